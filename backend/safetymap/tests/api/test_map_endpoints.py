MUMBAI = {"west": 72.8, "south": 19.0, "east": 72.9, "north": 19.1}


def test_clusters_endpoint_groups_nearby_points(api_client):
    response = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 10})
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "FeatureCollection"
    assert body["total_points"] == 2
    [feature] = body["features"]
    props = feature["properties"]
    assert props["cluster"] is True
    assert props["point_count"] == 2
    assert props["expansion_zoom"] == 16
    assert props["severity_counts"] == {"high": 1, "low": 1}


def test_clusters_endpoint_splits_at_max_zoom(api_client):
    response = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 16})
    assert response.status_code == 200
    features = response.json()["features"]
    assert len(features) == 2
    assert {f["properties"]["id"] for f in features} == {"inc-high", "inc-low"}
    assert all(f["properties"]["cluster"] is False for f in features)


def test_clusters_endpoint_applies_filters(api_client):
    response = api_client.get(
        "/api/map/clusters",
        params={**MUMBAI, "zoom": 10, "severities": "high"},
    )
    [feature] = response.json()["features"]
    assert feature["properties"]["id"] == "inc-high"
    assert feature["properties"]["severity"] == "high"


def test_clusters_endpoint_time_range(api_client):
    recent = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 16})
    month = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 16, "time_range": "30d"})
    assert len(recent.json()["features"]) == 2
    assert len(month.json()["features"]) == 3


def test_clusters_endpoint_rejects_bad_input(api_client):
    bad_severity = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 10, "severities": "extreme"})
    assert bad_severity.status_code == 422
    bad_range = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 10, "time_range": "2w"})
    assert bad_range.status_code == 422
    inverted = api_client.get(
        "/api/map/clusters",
        params={"west": 72.8, "south": 19.1, "east": 72.9, "north": 19.0, "zoom": 10},
    )
    assert inverted.status_code == 422
    missing_zoom = api_client.get("/api/map/clusters", params=MUMBAI)
    assert missing_zoom.status_code == 422


def test_expansion_zoom_endpoint(api_client):
    clusters = api_client.get("/api/map/clusters", params={**MUMBAI, "zoom": 10}).json()
    cluster_id = clusters["features"][0]["properties"]["id"]
    response = api_client.get(f"/api/map/clusters/{cluster_id}/expansion-zoom")
    assert response.status_code == 200
    assert response.json() == {"cluster_id": cluster_id, "expansion_zoom": 16}


def test_expansion_zoom_unknown_cluster_returns_404(api_client):
    response = api_client.get("/api/map/clusters/cluster-3-42/expansion-zoom")
    assert response.status_code == 404


def test_stats_endpoint(api_client):
    response = api_client.get("/api/map/stats")
    assert response.status_code == 200
    body = response.json()
    assert body["total_active"] == 3
    assert body["high_risk"] == 1
    assert body["last_24h"] == 2
    assert body["average_confidence_pct"] == 80
    only_news = api_client.get("/api/map/stats", params={"kinds": "news"}).json()
    assert only_news["total_active"] == 1


def test_heatmap_endpoint(api_client):
    response = api_client.get("/api/map/heatmap")
    assert response.status_code == 200
    weights = sorted(f["properties"]["weight"] for f in response.json()["features"])
    assert weights == [1, 3]


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "incidents": 3, "news": 1}
