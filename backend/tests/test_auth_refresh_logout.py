from conftest import bearer, login, refresh, register


def test_refresh_and_logout(client):
    register(client, "alice")

    login_response = login(client, "alice")
    assert login_response.status_code == 200
    tokens = login_response.json()

    refresh_response = refresh(client, tokens["accessToken"], tokens["refreshToken"])
    assert refresh_response.status_code == 200
    refreshed = refresh_response.json()
    assert refreshed["refreshToken"] != tokens["refreshToken"]

    logout_response = client.post(
        "/api/v1/auth/logout", headers=bearer(refreshed["accessToken"])
    )
    assert logout_response.status_code == 200

    refresh_again = refresh(client, refreshed["accessToken"], refreshed["refreshToken"])
    assert refresh_again.status_code == 401
