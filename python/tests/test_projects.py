"""Tests for projects.

Tests cover:
- Name validation (trimmed, non-empty)
- Owner-only reads (404 for others) and writes (403 for others)
- Cascading delete of the project's chats, messages, attachments and stored files
- Retired unversioned collection endpoints answering 410 with a hint
"""

import pytest

from vid0.db.models import Chat, ChatAttachment, Message, User
from vid0.errors import ApiErrorCode, ForbiddenError, InvalidRequestError, NotFoundError
from vid0.services import chats as chats_service
from vid0.services import projects as projects_service
from vid0.storage import FakeStorageClient


@pytest.fixture
def owner(db_session) -> User:
    user = User(subject="user_project_owner")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def other(db_session) -> User:
    user = User(subject="user_project_other")
    db_session.add(user)
    db_session.commit()
    return user


# =============================================================================
# Service
# =============================================================================


class TestProjectService:
    def test_name_is_trimmed(self, db_session, owner):
        project = projects_service.create_project(db_session, owner.id, "  Shorts  ")
        assert project.name == "Shorts"

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_blank_name_rejected(self, db_session, owner, name):
        with pytest.raises(InvalidRequestError) as exc_info:
            projects_service.create_project(db_session, owner.id, name)
        assert exc_info.value.code == ApiErrorCode.E_NAME_INVALID
        assert exc_info.value.message == "Project name is required"

    def test_overlong_name_rejected(self, db_session, owner):
        with pytest.raises(InvalidRequestError):
            projects_service.create_project(
                db_session, owner.id, "x" * (projects_service.MAX_PROJECT_NAME_LENGTH + 1)
            )

    def test_list_only_own_projects(self, db_session, owner, other):
        projects_service.create_project(db_session, owner.id, "Mine")
        projects_service.create_project(db_session, other.id, "Theirs")
        assert [p.name for p in projects_service.list_projects(db_session, owner.id)] == ["Mine"]

    def test_get_by_other_user_is_not_found(self, db_session, owner, other):
        project = projects_service.create_project(db_session, owner.id, "Mine")
        with pytest.raises(NotFoundError) as exc_info:
            projects_service.get_project(db_session, other.id, project.id)
        assert exc_info.value.code == ApiErrorCode.E_PROJECT_NOT_FOUND

    def test_rename_by_other_user_is_forbidden(self, db_session, owner, other):
        project = projects_service.create_project(db_session, owner.id, "Mine")
        with pytest.raises(ForbiddenError):
            projects_service.rename_project(db_session, other.id, project.id, "Theirs")
        assert projects_service.get_project(db_session, owner.id, project.id).name == "Mine"

    def test_delete_cascades_to_chats_messages_and_attachments(self, db_session, owner):
        storage = FakeStorageClient()
        project = projects_service.create_project(db_session, owner.id, "Channel")
        inside = chats_service.create_chat(db_session, owner.id, project_id=project.id)
        outside = chats_service.create_chat(db_session, owner.id)
        path = f"{owner.id}/{inside.id}/thumb.png"
        db_session.add(Message(chat_id=inside.id, seq=1, role="user", content="x"))
        db_session.add(
            ChatAttachment(
                chat_id=inside.id,
                user_id=owner.id,
                storage_path=path,
                file_url=storage.public_url(path),
                file_name="thumb.png",
                file_type="image/png",
                file_size=2048,
            )
        )
        db_session.commit()

        projects_service.delete_project(db_session, owner.id, project.id, storage=storage)

        db_session.expire_all()
        assert db_session.get(Chat, inside.id) is None
        assert db_session.get(Chat, outside.id) is not None
        assert db_session.query(Message).filter_by(chat_id=inside.id).count() == 0
        assert db_session.query(ChatAttachment).filter_by(chat_id=inside.id).count() == 0
        assert storage.deleted == [path]

    def test_delete_by_other_user_is_forbidden(self, db_session, owner, other):
        project = projects_service.create_project(db_session, owner.id, "Mine")
        with pytest.raises(ForbiddenError):
            projects_service.delete_project(db_session, other.id, project.id)

    def test_chats_for_project(self, db_session, owner, other):
        project = projects_service.create_project(db_session, owner.id, "Channel")
        chat = chats_service.create_chat(db_session, owner.id, project_id=project.id)
        chats_service.create_chat(db_session, owner.id)

        listed = chats_service.list_chats_for_project(db_session, owner.id, project.id)
        assert [c.id for c in listed] == [chat.id]

        with pytest.raises(NotFoundError):
            chats_service.list_chats_for_project(db_session, other.id, project.id)


# =============================================================================
# Routes
# =============================================================================


class TestProjectRoutes:
    def test_create_and_list_v2(self, authenticated_client, make_user):
        _, headers = make_user()
        created = authenticated_client.post(
            "/api/v2/projects", json={"name": "Tutorials"}, headers=headers
        )
        assert created.status_code == 201
        assert created.json()["data"]["name"] == "Tutorials"

        listed = authenticated_client.get("/api/v2/projects", headers=headers)
        assert listed.status_code == 200
        assert [p["name"] for p in listed.json()["data"]] == ["Tutorials"]

    def test_blank_name_is_400(self, authenticated_client, make_user):
        _, headers = make_user()
        response = authenticated_client.post(
            "/api/v2/projects", json={"name": "  "}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_NAME_INVALID"

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_legacy_collection_is_gone(self, authenticated_client, make_user, method):
        _, headers = make_user()
        response = getattr(authenticated_client, method)("/api/projects", headers=headers)
        assert response.status_code == 410
        error = response.json()["error"]
        assert error["code"] == "E_GONE"
        assert error["hint"] == "Use /api/v2/projects instead."

    def test_other_user_get_404_put_403_delete_403(self, authenticated_client, make_user):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        project_id = authenticated_client.post(
            "/api/v2/projects", json={"name": "Mine"}, headers=owner_headers
        ).json()["data"]["id"]

        get_response = authenticated_client.get(
            f"/api/projects/{project_id}", headers=other_headers
        )
        assert get_response.status_code == 404

        put_response = authenticated_client.put(
            f"/api/projects/{project_id}", json={"name": "Theirs"}, headers=other_headers
        )
        assert put_response.status_code == 403

        delete_response = authenticated_client.delete(
            f"/api/projects/{project_id}", headers=other_headers
        )
        assert delete_response.status_code == 403

        still_there = authenticated_client.get(f"/api/projects/{project_id}", headers=owner_headers)
        assert still_there.json()["data"]["name"] == "Mine"

    def test_rename_and_delete(self, authenticated_client, make_user):
        _, headers = make_user()
        project_id = authenticated_client.post(
            "/api/v2/projects", json={"name": "Old"}, headers=headers
        ).json()["data"]["id"]

        renamed = authenticated_client.put(
            f"/api/projects/{project_id}", json={"name": "New"}, headers=headers
        )
        assert renamed.json()["data"]["name"] == "New"

        chat = authenticated_client.post(
            "/api/create-chat", json={"projectId": project_id}, headers=headers
        ).json()["data"]
        chats = authenticated_client.get(f"/api/projects/{project_id}/chats", headers=headers)
        assert [c["id"] for c in chats.json()["data"]] == [chat["id"]]

        deleted = authenticated_client.delete(f"/api/projects/{project_id}", headers=headers)
        assert deleted.status_code == 204
        assert authenticated_client.get(f"/api/chats/{chat['id']}", headers=headers).status_code == 404
