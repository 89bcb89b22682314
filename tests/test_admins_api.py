import json

from conftest import PASSWORD, card_payload, login

ADMINS = "/api/v1/admins"
CARDS = "/api/v1/cards"


def test_bootstrap_only_works_once(client, admin_headers):
    response = client.post(
        f"{ADMINS}/bootstrap",
        json={"FullName": "Second Root", "Email": "root2@example.com", "Password": PASSWORD},
    )
    assert response.status_code == 403


def test_admin_routes_reject_regular_users(client, register):
    _, headers = register()
    assert client.get(f"{ADMINS}/users", headers=headers).status_code == 403
    assert client.post(f"{ADMINS}/cards/sweep", headers=headers).status_code == 403


def test_admin_creates_and_lists_admins(client, admin_headers):
    response = client.post(
        ADMINS,
        json={"FullName": "Ops Admin", "Email": "ops@example.com", "Password": PASSWORD},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["Type"] == "admin"
    login(client, "ops@example.com")

    listing = client.get(ADMINS, headers=admin_headers).json()
    assert listing["total_items"] == 2
    assert {a["Email"] for a in listing["data"]["items"]} == {
        "admin@example.com",
        "ops@example.com",
    }
    everyone = client.get(f"{ADMINS}/all", headers=admin_headers).json()
    assert len(everyone["data"]["items"]) == 2


def test_admin_updates_and_deletes_admin(client, admin_headers):
    created = client.post(
        ADMINS,
        json={"FullName": "Ops Admin", "Email": "ops@example.com", "Password": PASSWORD},
        headers=admin_headers,
    ).json()["data"]

    updated = client.put(
        f"{ADMINS}/{created['UserID']}", json={"FullName": "Ops Lead"}, headers=admin_headers
    )
    deleted = client.delete(f"{ADMINS}/{created['UserID']}", headers=admin_headers)
    again = client.delete(f"{ADMINS}/{created['UserID']}", headers=admin_headers)

    assert updated.json()["data"]["FullName"] == "Ops Lead"
    assert deleted.status_code == 200
    assert again.status_code == 404


def test_admin_manages_users(client, register, admin_headers):
    user_id, _ = register("ada@example.com", "Ada")

    listing = client.get(f"{ADMINS}/users", params={"per_page": 1}, headers=admin_headers)
    fetched = client.get(f"{ADMINS}/users/{user_id}", headers=admin_headers)
    updated = client.put(
        f"{ADMINS}/users/{user_id}", json={"MobileNo": "+14165550000"}, headers=admin_headers
    )

    assert listing.json()["total_items"] == 2
    assert listing.json()["total_pages"] == 2
    assert fetched.json()["data"]["Email"] == "ada@example.com"
    assert updated.json()["data"]["MobileNo"] == "+14165550000"


def test_deleting_user_keeps_their_cards(client, register, admin_headers):
    user_id, headers = register()
    card = client.post(
        CARDS, data={"data": json.dumps(card_payload())}, headers=headers
    ).json()["data"]

    response = client.delete(f"{ADMINS}/users/{user_id}", headers=admin_headers)

    assert response.status_code == 200
    assert client.get(f"{ADMINS}/users/{user_id}", headers=admin_headers).status_code == 404
    assert client.get(f"{CARDS}/{card['EncodedPath']}").status_code == 200


def test_admin_confirms_payment_and_lists_cards(client, register, admin_headers):
    _, headers = register()
    card = client.post(
        CARDS, data={"data": json.dumps(card_payload())}, headers=headers
    ).json()["data"]

    owner_attempt = client.patch(
        f"{ADMINS}/cards/{card['CardID']}/payment", json={"PaymentConfirmed": True}, headers=headers
    )
    confirmed = client.patch(
        f"{ADMINS}/cards/{card['CardID']}/payment",
        json={"PaymentConfirmed": True},
        headers=admin_headers,
    )
    listing = client.get(f"{ADMINS}/cards", headers=admin_headers).json()

    assert owner_attempt.status_code == 403
    assert confirmed.status_code == 200
    assert confirmed.json()["data"]["PaymentConfirmed"] is True
    assert listing["total_items"] == 1
    assert listing["data"]["items"][0]["PaymentConfirmed"] is True


def test_owner_cannot_mark_card_paid(client, register):
    _, headers = register()
    card = client.post(
        CARDS, data={"data": json.dumps(card_payload())}, headers=headers
    ).json()["data"]

    client.put(
        f"{CARDS}/{card['CardID']}",
        data={"data": json.dumps({"PaymentConfirmed": True})},
        headers=headers,
    )

    assert client.get(f"{CARDS}/{card['CardID']}").json()["data"]["PaymentConfirmed"] is False


def test_manual_sweep_keeps_fresh_cards(client, register, admin_headers):
    _, headers = register()
    client.post(CARDS, data={"data": json.dumps(card_payload())}, headers=headers)

    response = client.post(f"{ADMINS}/cards/sweep", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": 0}
    assert client.get(f"{ADMINS}/cards", headers=admin_headers).json()["total_items"] == 1
