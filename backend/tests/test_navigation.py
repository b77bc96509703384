import pytest

from ruralcare.client.errors import NavigationError, ServiceUnavailable, UnknownScreenError
from ruralcare.client.navigation import NavigationController, View, parse_screen, resolve_view
from ruralcare.models.session import AppSession, Screen, UserProfile, UserRole


@pytest.fixture
def navigation(fake_api):
    return NavigationController(fake_api)


def signed_in(role: UserRole) -> AppSession:
    profile = UserProfile(id="u1", email="u1@demo.com", name="Test User", role=role)
    return AppSession(
        current_screen=Screen.DASHBOARD,
        is_logged_in=True,
        access_token="token",
        user_profile=profile,
        user_role=role,
    )


@pytest.mark.parametrize("screen", [screen for screen in Screen if screen is not Screen.DASHBOARD])
def test_every_screen_resolves_to_a_view(screen):
    assert resolve_view(AppSession(current_screen=screen)).value == screen.value


@pytest.mark.parametrize(
    "role, view",
    [
        (UserRole.PATIENT, View.PATIENT_DASHBOARD),
        (UserRole.DOCTOR, View.DOCTOR_DASHBOARD),
        (UserRole.NURSE, View.DOCTOR_DASHBOARD),
        (UserRole.ADMIN, View.ADMIN_DASHBOARD),
    ],
)
def test_dashboard_depends_on_role(role, view):
    assert resolve_view(signed_in(role)) is view


def test_dashboard_without_role_resolves_to_login():
    assert resolve_view(AppSession(current_screen=Screen.DASHBOARD)) is View.LOGIN


def test_token_requires_login():
    with pytest.raises(ValueError):
        AppSession(access_token="orphan")


def test_parse_screen_rejects_unknown_names():
    assert parse_screen("ai-assistant") is Screen.AI_ASSISTANT
    with pytest.raises(UnknownScreenError) as excinfo:
        parse_screen("billing")
    assert excinfo.value.screen == "billing"


def test_navigate_then_back_restores_state(navigation):
    navigation.navigate_to(Screen.LOGIN)
    before = navigation.session

    navigation.navigate_to("clinic-locator")
    assert navigation.session.current_screen is Screen.CLINIC_LOCATOR
    assert navigation.session.nav_history == [Screen.SPLASH, Screen.LOGIN]

    navigation.go_back()
    assert navigation.session.current_screen is before.current_screen
    assert navigation.session.nav_history == before.nav_history


def test_many_navigations_unwind_in_order(navigation):
    targets = [Screen.LOGIN, Screen.HEALTH_EDUCATION, Screen.ARTICLE_VIEW, Screen.TRANSLATION_DEMO, Screen.LOGIN]
    for target in targets:
        navigation.navigate_to(target)

    visited = []
    for _ in targets:
        navigation.go_back()
        visited.append(navigation.session.current_screen)

    assert visited == [Screen.TRANSLATION_DEMO, Screen.ARTICLE_VIEW, Screen.HEALTH_EDUCATION, Screen.LOGIN, Screen.SPLASH]
    assert navigation.session.nav_history == []


def test_back_with_empty_history(navigation):
    navigation.go_back()
    assert navigation.session.current_screen is Screen.LOGIN
    assert navigation.session.nav_history == []


def test_unknown_screen_leaves_session_untouched(navigation):
    navigation.navigate_to(Screen.LOGIN)
    before = navigation.session

    with pytest.raises(UnknownScreenError):
        navigation.navigate_to("nowhere")

    assert navigation.session == before


def test_payload_is_whitelisted(navigation):
    clinic = {"id": "c1", "name": "Mthatha Rural Clinic"}
    navigation.navigate_to(Screen.CLINIC_DETAILS, {"selected_clinic": clinic})
    assert navigation.session.selected_clinic == clinic
    assert navigation.view is View.CLINIC_DETAILS

    with pytest.raises(NavigationError):
        navigation.navigate_to(Screen.ARTICLE_VIEW, {"is_logged_in": True})
    assert not navigation.session.is_logged_in


def test_listeners_see_each_transition(navigation):
    seen = []
    navigation.subscribe(lambda session: seen.append(session.current_screen))

    navigation.navigate_to(Screen.LOGIN)
    navigation.navigate_to(Screen.REGISTER)
    navigation.go_back()

    assert seen == [Screen.LOGIN, Screen.REGISTER, Screen.LOGIN]


async def test_start_without_token_stays_on_splash(navigation):
    await navigation.start()
    assert navigation.session.current_screen is Screen.SPLASH
    assert not navigation.session.is_loading


async def test_login_lands_on_role_dashboard(backend_client):
    navigation = NavigationController(backend_client)
    navigation.navigate_to(Screen.LOGIN)

    assert await navigation.login("patient@demo.com", "demo123")

    session = navigation.session
    assert session.is_logged_in
    assert session.current_screen is Screen.DASHBOARD
    assert session.nav_history == []
    assert session.user_role is UserRole.PATIENT
    assert session.user_profile.name == "Sarah Johnson"
    assert navigation.view is View.PATIENT_DASHBOARD
    assert backend_client.access_token == session.access_token

    navigation.go_back()
    assert navigation.session.current_screen is Screen.DASHBOARD


async def test_login_rejects_bad_password(backend_client):
    alerts = []
    navigation = NavigationController(backend_client, on_alert=alerts.append)

    assert not await navigation.login("doctor@demo.com", "wrong-password")

    assert alerts == ["Invalid login credentials"]
    assert not navigation.session.is_logged_in
    assert not navigation.session.is_loading


async def test_login_requires_fields(fake_api):
    alerts = []
    navigation = NavigationController(fake_api, on_alert=alerts.append)

    assert not await navigation.login("  ", "demo123")
    assert not await navigation.login("patient@demo.com", "")

    assert alerts == ["Please enter your email address", "Please enter your password"]


@pytest.mark.parametrize("role, view", [(UserRole.DOCTOR, View.DOCTOR_DASHBOARD), (UserRole.NURSE, View.DOCTOR_DASHBOARD)])
async def test_register_signs_in(backend_client, role, view):
    navigation = NavigationController(backend_client)

    assert await navigation.register("new.clinician@example.org", "secret1", "Thandi Nkosi", role, "+27 82 000 0000")

    assert navigation.session.is_logged_in
    assert navigation.session.user_profile.email == "new.clinician@example.org"
    assert navigation.view is view


async def test_register_shows_server_message(backend_client):
    alerts = []
    navigation = NavigationController(backend_client, on_alert=alerts.append)

    assert not await navigation.register("patient@demo.com", "secret1", "Someone", UserRole.PATIENT)
    assert not await navigation.register("short@example.org", "123", "Someone", UserRole.PATIENT)

    assert alerts == [
        "A user with this email address has already been registered",
        "Password should be at least 6 characters",
    ]
    assert not navigation.session.is_logged_in


async def test_start_resumes_stored_session(backend_client):
    auth = await backend_client.sign_in("admin@demo.com", "demo123")
    navigation = NavigationController(backend_client)

    await navigation.start(auth.access_token)

    assert navigation.session.is_logged_in
    assert navigation.view is View.ADMIN_DASHBOARD


async def test_start_with_stale_token_goes_to_login(backend_client):
    navigation = NavigationController(backend_client)

    await navigation.start("stale-token")

    assert navigation.session.current_screen is Screen.LOGIN
    assert not navigation.session.is_logged_in
    assert navigation.session.access_token is None
    assert backend_client.access_token is None


async def test_logout_revokes_token(backend_client):
    navigation = NavigationController(backend_client)
    await navigation.login("nurse@demo.com", "demo123")
    token = navigation.session.access_token
    navigation.navigate_to(Screen.HEALTH_RECORDS)

    await navigation.logout()

    assert navigation.session == AppSession(current_screen=Screen.LOGIN)
    assert backend_client.access_token is None
    with pytest.raises(ServiceUnavailable):
        await backend_client.get_profile(token)
