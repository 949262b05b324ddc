"""The HTTP store and API identity provider driven against the real app."""
import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from app.client.identity import ApiIdentityProvider, StaticIdentityProvider, UserIdentity
from app.client.session import SessionState
from app.client.store import HttpNoteStore
from app.client.workspace import NotesWorkspace
from app.core.exceptions import AuthRequired, StoreError
from conftest import AUTOSAVE_DELAY, settle
from main import app


@pytest.fixture
async def api(client):
    # `client` installs the database and Redis overrides
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test/api/v1") as ac:
        yield ac


@pytest.fixture
async def signed_in(api):
    response = await api.post("/auth/register", json={"username": "dana", "password": "secret123"})
    assert response.status_code == 201
    identity = ApiIdentityProvider(api)
    await identity.sign_in("dana", "secret123")
    return identity


async def test_sign_in_sets_current_user(signed_in):
    user = signed_in.current_user()

    assert user.username == "dana"
    assert user.access_token


async def test_sign_in_with_bad_password(api):
    await api.post("/auth/register", json={"username": "erin", "password": "secret123"})
    identity = ApiIdentityProvider(api)

    with pytest.raises(AuthRequired):
        await identity.sign_in("erin", "nope-nope")
    assert identity.current_user() is None


async def test_refresh_keeps_user_signed_in(signed_in):
    user = await signed_in.refresh()

    assert user.username == "dana"
    assert user.access_token


async def test_store_round_trip(signed_in, api):
    store = HttpNoteStore(api, signed_in)
    owner_id = signed_in.current_user().id

    created = await store.create(owner_id, {"title": "", "content": "<p>x</p>", "tags": ["Work"]})
    assert created.title == "Untitled Note"
    assert created.owner_id == owner_id

    updated = await store.update(created.id, {"tags": ["Work", "Ideas"]})
    assert updated.tags == ["Work", "Ideas"]
    assert updated.updated_at >= created.updated_at

    assert [n.id for n in await store.list(owner_id)] == [created.id]

    await store.delete(created.id)
    assert await store.list(owner_id) == []


async def test_store_errors_carry_status(signed_in, api):
    store = HttpNoteStore(api, signed_in)

    with pytest.raises(StoreError) as exc_info:
        await store.update(9999, {"title": "ghost"})
    assert exc_info.value.status_code == 404


async def test_store_rejects_foreign_owner(signed_in, api):
    store = HttpNoteStore(api, signed_in)

    with pytest.raises(StoreError):
        await store.list(signed_in.current_user().id + 1)


async def test_store_requires_identity(api):
    store = HttpNoteStore(api, StaticIdentityProvider(None))

    with pytest.raises(AuthRequired):
        await store.list(1)


async def test_revoked_token_surfaces_as_store_error(signed_in, api):
    user = signed_in.current_user()
    store = HttpNoteStore(api, StaticIdentityProvider(UserIdentity(user.id, user.username, "stale")))

    with pytest.raises(StoreError) as exc_info:
        await store.list(user.id)
    assert exc_info.value.status_code == 401


async def test_workspace_over_http(signed_in, api, notifier):
    store = HttpNoteStore(api, signed_in)
    workspace = NotesWorkspace(store, signed_in, notifier, autosave_delay=AUTOSAVE_DELAY)
    await workspace.load()

    note = await workspace.create_note()
    session = workspace.session
    session.set_content("Hello")
    await settle(session)
    assert session.note.content == "Hello"

    session.set_title("")
    saved = await workspace.save()
    assert saved.title == "Untitled Note"
    assert session.state is SessionState.VIEWING

    await workspace.load()
    assert workspace.notes[0].id == note.id
    assert workspace.notes[0].content == "Hello"

    assert await workspace.delete_note(note.id)
    assert workspace.selected is None


async def test_sign_out_clears_identity(signed_in):
    await signed_in.sign_out()

    assert signed_in.current_user() is None


async def test_from_settings_targets_configured_api():
    from app.core.config import settings

    identity = ApiIdentityProvider.from_settings()

    assert str(identity._client.base_url).rstrip("/") == settings.API_BASE_URL.rstrip("/")
    assert identity.current_user() is None
    await identity._client.aclose()


async def test_store_list_walks_every_page(signed_in, api):
    store = HttpNoteStore(api, signed_in)
    owner_id = signed_in.current_user().id
    for i in range(105):
        await store.create(owner_id, {"title": f"Note {i}"})

    notes = await store.list(owner_id)

    assert len(notes) == 105
    assert len({n.id for n in notes}) == 105
    assert [n.updated_at for n in notes] == sorted((n.updated_at for n in notes), reverse=True)


async def test_unreadable_response_is_store_error():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    identity = StaticIdentityProvider(UserIdentity(1, "dana", "token"))
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as client:
        store = HttpNoteStore(client, identity)

        with pytest.raises(StoreError):
            await store.update(1, {"title": "x"})
        with pytest.raises(StoreError):
            await store.list(1)


async def test_store_rejects_overlong_title(signed_in, api):
    store = HttpNoteStore(api, signed_in)

    with pytest.raises(StoreError) as exc_info:
        await store.create(signed_in.current_user().id, {"title": "x" * 201})
    assert exc_info.value.status_code == 422
