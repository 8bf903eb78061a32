import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storyforge import create_app
from storyforge.config import TestConfig
from storyforge.extensions import db
from storyforge.models import (
    Chapter,
    Character,
    GenerationRecord,
    Project,
    ProjectCollaborator,
    StoryObject,
    User,
)


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    app.config["WTF_CSRF_ENABLED"] = False
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


def _make_user(email, name="Test User"):
    user = User(email=email, display_name=name)
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app_instance):
    return _make_user("user@example.com")


@pytest.fixture
def project(app_instance, user):
    project = Project(title="Demo Project", description="Desc", owner_id=user.id)
    db.session.add(project)
    db.session.commit()
    return project


def _login(client, email="user@example.com"):
    response = client.post("/login", json={"email": email, "password": "password123"})
    assert response.status_code == 200


def test_register_login_and_me(client, app_instance):
    response = client.post(
        "/register",
        json={
            "displayName": "Nova",
            "email": "Nova@Example.com",
            "password": "password123",
            "confirmPassword": "password123",
        },
    )
    assert response.status_code == 201
    assert response.get_json()["user"]["email"] == "nova@example.com"

    duplicate = client.post(
        "/register",
        json={
            "displayName": "Nova",
            "email": "nova@example.com",
            "password": "password123",
            "confirmPassword": "password123",
        },
    )
    assert duplicate.status_code == 400

    _login(client, "nova@example.com")
    assert client.get("/me").get_json()["user"]["display_name"] == "Nova"


def test_login_rejects_wrong_password(client, user):
    response = client.post("/login", json={"email": user.email, "password": "wrong-password"})

    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "invalid_credentials"


def test_dashboard_creates_and_lists_projects(client, user, project):
    _login(client)

    created = client.post("/dashboard", json={"title": "Second Book", "genre": "mystery"})
    assert created.status_code == 201
    assert created.get_json()["project"]["status"] == "Draft"

    titles = [item["title"] for item in client.get("/dashboard").get_json()["projects"]]
    assert set(titles) == {"Demo Project", "Second Book"}


def test_dashboard_includes_shared_projects(client, user, project):
    other = _make_user("other@example.com")
    db.session.add(ProjectCollaborator(project_id=project.id, user_id=other.id, role="Viewer"))
    db.session.commit()
    _login(client, "other@example.com")

    projects = client.get("/dashboard").get_json()["projects"]

    assert [item["id"] for item in projects] == [project.id]


def test_invalid_character_submission_is_rejected(client, user, project):
    _login(client)

    response = client.post(f"/projects/{project.id}/characters", json={"role": "Protagonist"})

    assert response.status_code == 400
    assert Character.query.count() == 0


def test_valid_character_submission_creates_profile(client, user, project):
    _login(client)

    response = client.post(
        f"/projects/{project.id}/characters",
        json={
            "name": "Nova",
            "role": "Protagonist",
            "personalityTraits": ["bold", "restless"],
            "relationships": [{"with": "Kade", "type": "rival"}],
        },
    )

    assert response.status_code == 201
    payload = response.get_json()
    assert payload["personality_traits"] == ["bold", "restless"]
    assert payload["relationships"] == [{"with": "Kade", "type": "rival"}]
    assert payload["ai_generated"] is False
    assert Character.query.count() == 1
    assert Character.query.first().name == "Nova"


def test_partial_update_keeps_other_fields(client, user, project):
    _login(client)
    created = client.post(
        f"/projects/{project.id}/plots",
        json={"title": "The Heist", "importance": 8, "status": "In Progress"},
    ).get_json()

    response = client.put(f"/projects/{project.id}/plots/{created['id']}", json={"description": "A vault job."})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["title"] == "The Heist"
    assert payload["importance"] == 8
    assert payload["status"] == "In Progress"
    assert payload["description"] == "A vault job."


def test_editing_ai_character_marks_it_user_edited(client, user, project):
    character = Character(project_id=project.id, name="Elara", ai_generated=True)
    db.session.add(character)
    db.session.commit()
    _login(client)

    payload = client.put(
        f"/projects/{project.id}/characters/{character.id}", json={"voice": "Soft"}
    ).get_json()

    assert payload["edited_by_user"] is True
    assert payload["voice"] == "Soft"


def test_chapter_word_count_follows_content(client, user, project):
    _login(client)

    payload = client.post(
        f"/projects/{project.id}/chapters",
        json={"title": "Opening", "content": "The river rose at dawn."},
    ).get_json()

    assert payload["word_count"] == 5
    assert payload["position"] == 1
    assert db.session.get(Chapter, payload["id"]).status == "Draft"


def test_object_owner_must_be_in_same_project(client, user, project):
    other_project = Project(title="Elsewhere", owner_id=user.id)
    db.session.add(other_project)
    db.session.commit()
    stranger = Character(project_id=other_project.id, name="Stranger")
    local = Character(project_id=project.id, name="Local")
    db.session.add_all([stranger, local])
    db.session.commit()
    _login(client)

    rejected = client.post(f"/projects/{project.id}/objects", json={"name": "Key", "ownerId": stranger.id})
    accepted = client.post(f"/projects/{project.id}/objects", json={"name": "Key", "ownerId": local.id})

    assert rejected.status_code == 400
    assert accepted.status_code == 201
    assert accepted.get_json()["owner_id"] == local.id


def test_deleting_character_clears_object_owner(client, user, project):
    owner = Character(project_id=project.id, name="Owner")
    db.session.add(owner)
    db.session.commit()
    item = StoryObject(project_id=project.id, name="Lantern", owner_id=owner.id)
    db.session.add(item)
    db.session.commit()
    _login(client)

    response = client.delete(f"/projects/{project.id}/characters/{owner.id}")

    assert response.status_code == 200
    db.session.expire_all()
    assert db.session.get(StoryObject, item.id).owner_id is None


def test_viewer_can_read_but_not_write(client, user, project):
    viewer = _make_user("viewer@example.com")
    db.session.add(ProjectCollaborator(project_id=project.id, user_id=viewer.id, role="Viewer"))
    db.session.commit()
    _login(client, "viewer@example.com")

    assert client.get(f"/projects/{project.id}/settings").status_code == 200
    assert client.post(f"/projects/{project.id}/settings", json={"name": "Harbour"}).status_code == 403
    assert client.get(f"/projects/{project.id}").get_json()["project"]["role"] == "Viewer"


def test_outsider_cannot_read_project(client, user, project):
    _make_user("outsider@example.com")
    _login(client, "outsider@example.com")

    response = client.get(f"/projects/{project.id}/characters")

    assert response.status_code == 403
    assert response.get_json()["error"]["code"] == "forbidden"


def test_unknown_collection_is_not_found(client, user, project):
    _login(client)

    assert client.get(f"/projects/{project.id}/spaceships").status_code == 404


def test_owner_manages_collaborators(client, user, project):
    editor = _make_user("editor@example.com")
    _login(client)

    added = client.post(
        f"/projects/{project.id}/collaborators", json={"email": "editor@example.com", "role": "Editor"}
    )
    assert added.status_code == 201
    updated = client.post(
        f"/projects/{project.id}/collaborators", json={"email": "editor@example.com", "role": "Viewer"}
    )
    assert updated.status_code == 200
    assert ProjectCollaborator.query.filter_by(user_id=editor.id).one().role == "Viewer"

    removed = client.delete(f"/projects/{project.id}/collaborators/{editor.id}")
    assert removed.status_code == 200
    assert ProjectCollaborator.query.count() == 0


def test_editor_can_write_but_not_delete_project(client, user, project):
    editor = _make_user("editor@example.com")
    db.session.add(ProjectCollaborator(project_id=project.id, user_id=editor.id, role="Editor"))
    db.session.commit()
    _login(client, "editor@example.com")

    assert client.put(f"/projects/{project.id}", json={"genre": "fable"}).status_code == 200
    assert client.delete(f"/projects/{project.id}").status_code == 403


def test_character_promoted_from_generation(client, user, project):
    generation = GenerationRecord(
        project_id=project.id,
        user_id=user.id,
        task="character",
        request_params={"task": "character"},
        response_content="Sure!\n"
        + json.dumps({"name": "Elara", "personalityTraits": "brave, curious", "role": "Protagonist"}),
    )
    db.session.add(generation)
    db.session.commit()
    _login(client)

    response = client.post(
        f"/projects/{project.id}/characters/from-generation", json={"generationId": generation.id}
    )

    assert response.status_code == 201
    character = response.get_json()["character"]
    assert character["name"] == "Elara"
    assert character["personality_traits"] == ["brave", "curious"]
    assert character["goals"] == ["Not specified"]
    assert character["ai_generated"] is True
    assert character["edited_by_user"] is False
    assert db.session.get(GenerationRecord, generation.id).is_saved is True


def test_promotion_rejects_unstructured_generation(client, user, project):
    generation = GenerationRecord(
        project_id=project.id,
        user_id=user.id,
        task="chapter",
        request_params={},
        response_content="It was a dark and stormy night.",
    )
    db.session.add(generation)
    db.session.commit()
    _login(client)

    response = client.post(
        f"/projects/{project.id}/characters/from-generation", json={"generationId": generation.id}
    )

    assert response.status_code == 400
    assert Character.query.count() == 0


def test_fractional_integer_fields_are_rejected(client, user, project):
    _login(client)

    rejected = client.post(f"/projects/{project.id}/plots", json={"title": "The Heist", "importance": 7.5})
    accepted = client.post(f"/projects/{project.id}/plots", json={"title": "The Heist", "importance": 7.0})

    assert rejected.status_code == 400
    assert accepted.status_code == 201
    assert accepted.get_json()["importance"] == 7
