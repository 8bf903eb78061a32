import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storyforge import create_app
from storyforge.config import TestConfig
from storyforge.extensions import db
from storyforge.models import Chapter, Character, Project, ProjectCollaborator, ProjectExport, User
from storyforge.services.exporters import ExportError, ExportOptions, render_export


def _sample_project():
    project = SimpleNamespace(title="River Tales", description="Stories from the delta.")
    chapters = [
        SimpleNamespace(position=1, title="The Flood", synopsis="Water rises.", content="The river rose.\n\nElara ran."),
        SimpleNamespace(position=2, title="", synopsis=None, content=""),
    ]
    characters = [SimpleNamespace(name="Elara", short_description="A scout <of> the delta")]
    settings = [SimpleNamespace(name="Saltmarsh", description="")]
    return project, chapters, characters, settings


def test_text_export_lists_contents_and_chapters_in_order():
    project, chapters, characters, settings = _sample_project()

    document = render_export("text", project, chapters, characters=characters, settings=settings)
    text = document.content.decode("utf-8")

    assert text.startswith("River Tales\n\nStories from the delta.")
    assert "Contents:\n  Chapter 1: The Flood\n  Chapter 2: Untitled Chapter" in text
    assert text.index("Chapter 1: The Flood\nSynopsis: Water rises.") < text.index("(No chapter text available.)")
    assert "Characters:" not in text
    assert document.mimetype.startswith("text/plain")
    assert document.extension == "txt"
    assert document.size == len(document.content)


def test_optional_sections_follow_configuration():
    project, chapters, characters, settings = _sample_project()
    options = ExportOptions(
        include_title_page=False,
        include_table_of_contents=False,
        include_character_list=True,
        include_setting_descriptions=True,
    )

    text = render_export(
        "markdown", project, chapters, characters=characters, settings=settings, options=options
    ).content.decode("utf-8")

    assert "# River Tales" not in text
    assert "## Contents" not in text
    assert "- **Elara**: A scout <of> the delta" in text
    assert "- **Saltmarsh**\n" in text
    assert "## Chapter 1: The Flood\n\n*Water rises.*" in text


def test_html_export_escapes_text():
    project, chapters, characters, _ = _sample_project()
    options = ExportOptions(include_character_list=True)

    page = render_export("html", project, chapters, characters=characters, options=options).content.decode("utf-8")

    assert "<title>River Tales</title>" in page
    assert "A scout &lt;of&gt; the delta" in page
    assert '<a href="#chapter-1">Chapter 1: The Flood</a>' in page
    assert "<p>The river rose.</p>\n<p>Elara ran.</p>" in page


def test_pdf_export_handles_non_latin_text():
    project, chapters, _, _ = _sample_project()
    project.title = "Café — “River” 河"

    document = render_export("pdf", project, chapters)

    assert document.content.startswith(b"%PDF")
    assert document.mimetype == "application/pdf"


def test_pdf_export_without_front_matter_or_chapters_still_renders():
    project, _, _, _ = _sample_project()

    document = render_export("pdf", project, [], options=ExportOptions(include_title_page=False))

    assert document.content.startswith(b"%PDF")


def test_unknown_format_is_an_export_error():
    project, chapters, _, _ = _sample_project()

    with pytest.raises(ExportError):
        render_export("epub", project, chapters)


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


def _make_user(email):
    user = User(email=email, display_name="Writer")
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app_instance):
    return _make_user("writer@example.com")


@pytest.fixture
def project(app_instance, user):
    project = Project(title="River Tales", description="Stories from the delta.", owner_id=user.id)
    db.session.add(project)
    db.session.commit()
    db.session.add_all(
        [
            Chapter(project_id=project.id, title="The Crossing", position=2, content="They crossed at dusk."),
            Chapter(project_id=project.id, title="The Flood", position=1, content="The river rose."),
            Character(project_id=project.id, name="Elara", short_description="A scout"),
        ]
    )
    db.session.commit()
    return project


def _login(client, email="writer@example.com"):
    response = client.post("/login", json={"email": email, "password": "password123"})
    assert response.status_code == 200


def test_markdown_export_is_created_and_downloaded(client, user, project):
    _login(client)

    response = client.post(
        f"/projects/{project.id}/exports",
        json={"name": "Draft one", "format": "markdown", "configuration": {"includeCharacterList": True}},
    )

    assert response.status_code == 201
    export = response.get_json()["export"]
    assert export["status"] == "Completed"
    assert export["configuration"]["includeCharacterList"] is True
    assert export["configuration"]["includeTitlePage"] is True
    assert export["file_size"] > 0

    download = client.get(f"/projects/{project.id}/exports/{export['id']}/download")
    assert download.status_code == 200
    assert download.mimetype == "text/markdown"
    assert "Draft_one.md" in download.headers["Content-Disposition"]
    body = download.data.decode("utf-8")
    assert body.index("## Chapter 1: The Flood") < body.index("## Chapter 2: The Crossing")
    assert "- **Elara**: A scout" in body
    assert db.session.get(ProjectExport, export["id"]).download_count == 1


def test_pdf_export_downloads_pdf_bytes(client, user, project):
    _login(client)

    export = client.post(
        f"/projects/{project.id}/exports", json={"name": "Print", "format": "pdf"}
    ).get_json()["export"]
    download = client.get(f"/projects/{project.id}/exports/{export['id']}/download")

    assert download.mimetype == "application/pdf"
    assert download.data.startswith(b"%PDF")


def test_selected_chapters_must_belong_to_project(client, user, project):
    other = Project(title="Elsewhere", owner_id=user.id)
    db.session.add(other)
    db.session.commit()
    stray = Chapter(project_id=other.id, title="Stray", position=1)
    db.session.add(stray)
    db.session.commit()
    _login(client)

    response = client.post(
        f"/projects/{project.id}/exports",
        json={"name": "Mixed", "format": "text", "configuration": {"includeChapters": [stray.id]}},
    )

    assert response.status_code == 400
    assert ProjectExport.query.count() == 0


def test_selected_chapters_limit_the_export(client, user, project):
    crossing = Chapter.query.filter_by(title="The Crossing").one()
    _login(client)

    export = client.post(
        f"/projects/{project.id}/exports",
        json={"name": "Excerpt", "format": "text", "configuration": {"includeChapters": [crossing.id]}},
    ).get_json()["export"]
    body = client.get(f"/projects/{project.id}/exports/{export['id']}/download").data.decode("utf-8")

    assert export["configuration"]["includeChapters"] == [crossing.id]
    assert "The Crossing" in body
    assert "The Flood" not in body


@pytest.mark.parametrize(
    "body",
    [
        {"format": "pdf"},
        {"name": "Draft", "format": "epub"},
        {"name": "Draft", "format": "text", "configuration": {"includeTitlePage": "yes"}},
        {"name": "Draft", "format": "text", "configuration": {"includeChapters": "all"}},
    ],
)
def test_invalid_export_requests_are_rejected(client, user, project, body):
    _login(client)

    response = client.post(f"/projects/{project.id}/exports", json=body)

    assert response.status_code == 400
    assert ProjectExport.query.count() == 0


def test_failed_render_is_recorded_and_not_downloadable(monkeypatch, client, user, project):
    from storyforge.exports import routes as export_routes

    def failing_render(*_args, **_kwargs):
        raise ExportError("layout failed")

    monkeypatch.setattr(export_routes, "render_export", failing_render)
    _login(client)

    export = client.post(
        f"/projects/{project.id}/exports", json={"name": "Broken", "format": "pdf"}
    ).get_json()["export"]
    download = client.get(f"/projects/{project.id}/exports/{export['id']}/download")

    assert export["status"] == "Failed"
    assert export["error_message"] == "layout failed"
    assert download.status_code == 400


def test_exports_are_listed_newest_first(client, user, project):
    _login(client)
    for name in ("First", "Second"):
        client.post(f"/projects/{project.id}/exports", json={"name": name, "format": "text"})

    payload = client.get(f"/projects/{project.id}/exports").get_json()

    assert payload["count"] == 2
    assert [item["name"] for item in payload["exports"]] == ["Second", "First"]


def test_viewer_can_export_but_not_delete_others_exports(client, user, project):
    viewer = _make_user("viewer@example.com")
    db.session.add(ProjectCollaborator(project_id=project.id, user_id=viewer.id, role="Viewer"))
    owner_export = ProjectExport(
        project_id=project.id, user_id=user.id, name="Owner copy", format="text", status="Completed"
    )
    db.session.add(owner_export)
    db.session.commit()
    _login(client, "viewer@example.com")

    own = client.post(f"/projects/{project.id}/exports", json={"name": "Mine", "format": "html"})
    assert own.status_code == 201

    assert client.delete(f"/projects/{project.id}/exports/{owner_export.id}").status_code == 403
    assert client.delete(f"/projects/{project.id}/exports/{own.get_json()['export']['id']}").status_code == 200


def test_outsider_cannot_see_exports(client, user, project):
    _make_user("outsider@example.com")
    _login(client, "outsider@example.com")

    assert client.get(f"/projects/{project.id}/exports").status_code == 403
    assert client.post(f"/projects/{project.id}/exports", json={"name": "X", "format": "text"}).status_code == 403


def test_export_from_another_project_is_not_found(client, user, project):
    other = Project(title="Elsewhere", owner_id=user.id)
    db.session.add(other)
    db.session.commit()
    foreign = ProjectExport(project_id=other.id, user_id=user.id, name="Other", format="text", status="Completed")
    db.session.add(foreign)
    db.session.commit()
    _login(client)

    assert client.get(f"/projects/{project.id}/exports/{foreign.id}").status_code == 404
