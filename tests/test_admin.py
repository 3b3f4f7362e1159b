def test_get_all_status(api_client):
    response = api_client.get("/admin/status")
    assert response.status_code == 200
    data = response.json()
    openrouter = data["pools"]["openrouter"]
    assert openrouter["total_keys"] == 2
    assert openrouter["available_keys"] == 2
    assert [key["id"] for key in openrouter["keys"]] == ["key_1", "key_2"]
    assert data["pools"]["serper"]["total_keys"] == 0
    assert data["dispatchers"]["openrouter"] == {"pending": 0, "dispatched": 0}


def test_get_key_status(api_client):
    response = api_client.get("/admin/status/openrouter/key_1")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "key_1"
    assert data["status"] == "active"
    assert data["key_prefix"] == "or_key_one"
    assert data["rate_limit_hits"] == 0
    assert data["cooldown_until"] is None


def test_get_key_status_not_found(api_client):
    response = api_client.get("/admin/status/openrouter/key_99")
    assert response.status_code == 404
    assert response.json() == {"detail": "Key key_99 not found"}

    response = api_client.get("/admin/status/gemini/key_1")
    assert response.status_code == 404
    assert response.json() == {"detail": "Pool gemini not found"}


def test_purge_expired(api_client):
    response = api_client.post("/admin/purge-expired")
    assert response.status_code == 200
    assert response.json() == {"message": "Expired cache entries purged", "removed": 0}
