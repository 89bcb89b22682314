import json
from datetime import timedelta

import pydantic
import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.controllers import card_controller
from app.controllers.card_controller import (
    confirm_payment,
    create_card,
    delete_card,
    find_expired_unpaid_cards,
    get_card_by_encoded_path,
    get_card_by_id,
    list_cards,
    list_user_cards,
    resolve_card,
    sweep_expired_unpaid_cards,
    update_card,
)
from app.core.encoding import encode_id
from app.core.exceptions import ConflictError, NotFound, ValidationError
from app.core.utils import as_utc, parse_payload
from app.models.card import Card
from app.schemas.card_schema import (
    CardCreate,
    CardPaymentUpdate,
    CardUpdate,
    ImageUpload,
)
from conftest import card_payload

PNG = ImageUpload(filename="me.png", content_type="image/png", content=b"\x89PNG fake image")


def make_card(db, blobs, user_id="User101", image=None, **overrides):
    card = CardCreate(**card_payload(**overrides))
    return create_card(user_id, card, db, blobs, image)["data"]


def test_create_card_sets_identifiers_links_and_expiry(db, blobs):
    data = make_card(db, blobs)

    assert data["CardID"] == "User101_001"
    assert data["EncodedPath"] == encode_id("User101_001")
    assert data["BusinessCardLink"] == f"https://QRbook.ca/{data['EncodedPath']}"
    assert data["TemporaryCardLink"] == f"https://QRbook.ca/temporary/{data['EncodedPath']}"
    assert data["PaymentConfirmed"] is False
    created = as_utc(data["CreatedAt"])
    assert as_utc(data["TemporaryCardExpiry"]) - created == timedelta(days=2)
    assert as_utc(data["PaymentExpiry"]) - created == timedelta(days=4)
    assert [entry["platform"] for entry in data["SocialMedia"]] == ["linkedin", "github"]


def test_card_ids_are_sequential_per_user(db, blobs):
    make_card(db, blobs, Email="one@example.com")
    make_card(db, blobs, Email="two@example.com")
    third = make_card(db, blobs, Email="three@example.com")
    other_user = make_card(db, blobs, user_id="User102", Email="four@example.com")

    assert third["CardID"] == "User101_003"
    assert other_user["CardID"] == "User102_001"


def test_card_id_skips_numbers_still_in_use(db, blobs):
    make_card(db, blobs, Email="one@example.com")
    make_card(db, blobs, Email="two@example.com")
    delete_card("User101_001", db, blobs)

    # One card left, but "_002" is still taken
    data = make_card(db, blobs, Email="three@example.com")
    assert data["CardID"] == "User101_003"


def test_duplicate_email_is_a_conflict(db, blobs):
    make_card(db, blobs)
    with pytest.raises(ConflictError):
        make_card(db, blobs, user_id="User102")
    assert db.query(Card).count() == 1


def test_invalid_mobile_number_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        parse_payload(CardCreate, json.dumps(card_payload(MobileNumber="12345")))
    assert exc_info.value.status_code == 400
    errors = exc_info.value.detail["data"]["errors"]
    assert errors[0]["field"] == "MobileNumber"

    with pytest.raises(pydantic.ValidationError):
        CardCreate(**card_payload(MobileNumber="12345"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"Name": "J"},
        {"Email": "not-an-email"},
        {"SocialMedia": [{"platform": "web", "url": "not a url"}]},
        {"SocialMedia": "[{broken"},
    ],
)
def test_invalid_card_fields_are_rejected(overrides):
    with pytest.raises(ValidationError):
        parse_payload(CardCreate, card_payload(**overrides))


def test_social_media_accepts_serialized_json():
    entries = [{"platform": "x", "url": "https://x.com/jane"}]
    card = parse_payload(CardCreate, card_payload(SocialMedia=json.dumps(entries)))
    assert card.SocialMedia[0].url == "https://x.com/jane"


def test_create_card_stores_image_with_timestamped_name(db, blobs):
    data = make_card(db, blobs, image=PNG)

    reference = data["ProfileImage"]
    assert reference.startswith("/uploads/")
    name = reference.rsplit("/", 1)[1]
    assert name.endswith("-me.png")
    assert blobs.serve(name).read_bytes() == PNG.content


def test_create_card_rejects_non_image_upload(db, blobs):
    upload = ImageUpload(filename="notes.txt", content_type="text/plain", content=b"hi")
    with pytest.raises(ValidationError):
        make_card(db, blobs, image=upload)
    assert db.query(Card).count() == 0


def test_duplicate_email_never_writes_image(db, blobs):
    make_card(db, blobs)
    with pytest.raises(ConflictError):
        make_card(db, blobs, user_id="User102", image=PNG)
    assert not blobs.root.exists()


def test_failed_create_discards_stored_image(db, blobs, monkeypatch):
    monkeypatch.setattr(card_controller, "CARD_ID_MAX_ATTEMPTS", 0)
    with pytest.raises(ConflictError):
        make_card(db, blobs, image=PNG)
    assert list(blobs.root.iterdir()) == []
    assert db.query(Card).count() == 0


def test_encoded_token_resolves_to_same_card_as_raw_id(db, blobs):
    data = make_card(db, blobs)

    by_id = get_card_by_id("User101_001", db)["data"]
    by_token = resolve_card(encode_id("User101_001"), db)["data"]
    by_slash_token = resolve_card(encode_id("/User101_001"), db)["data"]
    by_raw = resolve_card("User101_001", db)["data"]
    by_path = get_card_by_encoded_path(data["EncodedPath"], db)["data"]

    assert by_token == by_id == by_slash_token == by_raw == by_path


def test_resolving_falls_back_to_stored_encoded_path(db, blobs):
    make_card(db, blobs)
    # A record whose stored path predates the current encoding
    card = db.query(Card).first()
    card.EncodedPath = "legacy-path"
    db.commit()

    assert resolve_card("legacy-path", db)["data"]["CardID"] == "User101_001"
    with pytest.raises(NotFound):
        get_card_by_encoded_path(encode_id("User101_002"), db)


def test_unknown_card_is_not_found(db, blobs):
    with pytest.raises(NotFound):
        resolve_card("does-not-exist", db)
    with pytest.raises(NotFound):
        get_card_by_id("User101_001", db)


def test_update_changes_only_provided_fields(db, blobs):
    make_card(db, blobs)
    social = json.dumps([{"platform": "site", "url": "https://jane.dev"}])
    card_update = parse_payload(CardUpdate, {"JobPosition": "CTO", "SocialMedia": social})

    data = update_card("User101_001", card_update, db, blobs)["data"]

    assert data["JobPosition"] == "CTO"
    assert data["Name"] == "Jane Doe"
    assert data["SocialMedia"] == [{"platform": "site", "url": "https://jane.dev"}]


def test_update_by_internal_key(db, blobs):
    data = make_card(db, blobs)
    updated = update_card(str(data["CardKey"]), CardUpdate(Pronouns="they/them"), db, blobs)
    assert updated["data"]["Pronouns"] == "they/them"


def test_update_with_null_clears_optional_fields(db, blobs):
    make_card(db, blobs, Website="https://jane.dev", Address="1 Main St")
    card_update = parse_payload(
        CardUpdate,
        '{"Website": null, "Address": null, "Description": null, "SocialMedia": null}',
    )

    data = update_card("User101_001", card_update, db, blobs)["data"]

    assert data["Website"] is None
    assert data["Address"] is None
    assert data["Description"] is None
    assert data["SocialMedia"] == []
    assert data["Name"] == "Jane Doe"


@pytest.mark.parametrize("field", ["Name", "Pronouns", "JobPosition", "MobileNumber", "Email"])
def test_update_cannot_null_required_fields(field):
    with pytest.raises(ValidationError) as exc_info:
        parse_payload(CardUpdate, {field: None})
    assert exc_info.value.detail["data"]["errors"][0]["field"] == field


def test_malformed_social_media_update_leaves_card_unchanged(db, blobs):
    before = make_card(db, blobs)

    with pytest.raises(ValidationError):
        card_update = parse_payload(
            CardUpdate, {"Name": "Changed Name", "SocialMedia": "{not json"}
        )
        update_card("User101_001", card_update, db, blobs)

    db.expire_all()
    assert get_card_by_id("User101_001", db)["data"] == before


def test_update_email_conflict(db, blobs):
    make_card(db, blobs, Email="one@example.com")
    make_card(db, blobs, Email="two@example.com")
    with pytest.raises(ConflictError):
        update_card("User101_002", CardUpdate(Email="one@example.com"), db, blobs)


def test_update_with_new_image_removes_previous_blob(db, blobs):
    data = make_card(db, blobs, image=PNG)
    old_name = data["ProfileImage"].rsplit("/", 1)[1]
    jpeg = ImageUpload(filename="new.jpg", content_type="image/jpeg", content=b"jpeg bytes")

    updated = update_card("User101_001", CardUpdate(), db, blobs, image=jpeg)["data"]

    new_name = updated["ProfileImage"].rsplit("/", 1)[1]
    assert new_name.endswith("-new.jpg")
    assert blobs.serve(new_name).read_bytes() == b"jpeg bytes"
    with pytest.raises(NotFound):
        blobs.serve(old_name)


def test_update_respects_owner(db, blobs):
    make_card(db, blobs)
    with pytest.raises(NotFound):
        update_card("User101_001", CardUpdate(Name="Mallory"), db, blobs, owner_id="User102")


def test_delete_card_removes_record_and_image(db, blobs):
    data = make_card(db, blobs, image=PNG)
    name = data["ProfileImage"].rsplit("/", 1)[1]

    deleted = delete_card("User101_001", db, blobs)["data"]

    assert deleted["CardID"] == "User101_001"
    assert db.query(Card).count() == 0
    with pytest.raises(NotFound):
        blobs.serve(name)


def test_delete_card_with_missing_image_still_succeeds(db, blobs):
    data = make_card(db, blobs, image=PNG)
    blobs.delete(data["ProfileImage"].rsplit("/", 1)[1])

    deleted = delete_card(data["CardKey"], db, blobs)["data"]

    assert deleted["CardID"] == data["CardID"]
    assert db.query(Card).count() == 0


def test_delete_unknown_card_is_not_found(db, blobs):
    with pytest.raises(NotFound):
        delete_card("User101_001", db, blobs)


def test_list_cards_newest_first(db, blobs):
    make_card(db, blobs, Email="one@example.com")
    make_card(db, blobs, Email="two@example.com")
    make_card(db, blobs, user_id="User102", Email="three@example.com")

    page = list_cards(db, page=1, per_page=2)

    assert page["total_items"] == 3
    assert page["total_pages"] == 2
    assert [c["CardID"] for c in page["data"]["items"]] == ["User102_001", "User101_002"]


def test_list_user_cards(db, blobs):
    make_card(db, blobs, Email="one@example.com")
    make_card(db, blobs, user_id="User102", Email="two@example.com")

    items = list_user_cards("User101", db)["data"]["items"]
    assert [c["CardID"] for c in items] == ["User101_001"]
    with pytest.raises(NotFound):
        list_user_cards("User999", db)


def test_expired_set_depends_on_card_age(db, blobs):
    data = make_card(db, blobs)
    created = as_utc(data["CreatedAt"])

    expired_later = find_expired_unpaid_cards(db, now=created + timedelta(days=3))
    expired_soon = find_expired_unpaid_cards(db, now=created + timedelta(days=1))

    assert [c.CardID for c in expired_later] == ["User101_001"]
    assert expired_soon == []


def test_paid_cards_never_expire(db, blobs):
    data = make_card(db, blobs)
    confirm_payment("User101_001", CardPaymentUpdate(PaymentConfirmed=True), db)

    now = as_utc(data["CreatedAt"]) + timedelta(days=30)
    assert find_expired_unpaid_cards(db, now=now) == []


def test_sweep_removes_expired_cards_and_is_idempotent(db, blobs):
    data = make_card(db, blobs, image=PNG)
    make_card(db, blobs, Email="paid@example.com")
    confirm_payment("User101_002", CardPaymentUpdate(), db)
    later = as_utc(data["CreatedAt"]) + timedelta(days=3)

    assert sweep_expired_unpaid_cards(db, blobs, now=later) == 1
    assert sweep_expired_unpaid_cards(db, blobs, now=later) == 0

    assert [c.CardID for c in db.query(Card).all()] == ["User101_002"]
    assert not any(blobs.root.iterdir())


def test_sweep_keeps_image_when_delete_fails(db, blobs, monkeypatch):
    data = make_card(db, blobs, image=PNG)
    name = data["ProfileImage"].rsplit("/", 1)[1]
    later = as_utc(data["CreatedAt"]) + timedelta(days=3)

    def failing_commit():
        raise SQLAlchemyError("database went away")

    monkeypatch.setattr(db, "commit", failing_commit)
    assert sweep_expired_unpaid_cards(db, blobs, now=later) == 0
    monkeypatch.undo()

    db.expire_all()
    card = db.query(Card).one()
    assert card.ProfileImage == data["ProfileImage"]
    assert blobs.serve(name).read_bytes() == PNG.content


def test_sweep_logs_and_swallows_failures(db, blobs, monkeypatch, caplog):
    def broken_finder(db, now=None):
        raise RuntimeError("database went away")

    monkeypatch.setattr(card_controller, "find_expired_unpaid_cards", broken_finder)

    assert sweep_expired_unpaid_cards(db, blobs) == 0
    assert "Error deleting expired unpaid cards" in caplog.text
