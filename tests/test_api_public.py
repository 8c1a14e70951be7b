import pytest

from apps.api.deps import get_repository
from apps.api.main import app
from apps.core.exceptions import DataAccessError
from apps.destinations.services.repository import DestinationRepository

API = "/api/v1/public"
PACHUCA = {"lat": 20.1011, "lng": -98.7591}


def _ids(items):
    return [item["id"] for item in items]


@pytest.mark.e2e
def test_health_endpoints(client):
    assert client.get("/api/health").json()["status"] == "ok"
    assert client.get("/api/health/db").json()["scope"] == "db"
    cache = client.get("/api/health/cache").json()
    assert cache["status"] == "ok"
    assert cache["cache"]["backend"] == "memory"


@pytest.mark.e2e
def test_advanced_search_defaults(client):
    r = client.get(f"{API}/search/advanced")
    assert r.status_code == 200
    data = r.json()

    assert _ids(data["destinos"]) == [1, 3, 2, 4]
    assert data["pagination"]["per_page"] == 15
    assert data["pagination"]["last_page"] == 1
    assert data["search_stats"]["total_results"] == 4
    assert "distance" not in data["destinos"][0]


@pytest.mark.e2e
def test_advanced_search_price_range(client):
    r = client.get(f"{API}/search/advanced", params={"precio_min": 100, "precio_max": 300})
    assert r.status_code == 200
    assert sorted(d["price"] for d in r.json()["destinos"]) == [100.0, 250.0]


@pytest.mark.e2e
def test_advanced_search_geo(client):
    r = client.get(f"{API}/search/advanced", params={**PACHUCA, "distancia_max": 100, "sort_by": "distance"})
    assert r.status_code == 200
    destinos = r.json()["destinos"]

    assert _ids(destinos) == [3, 1, 2]
    assert destinos[0]["distance"] == pytest.approx(10.0, abs=0.5)


@pytest.mark.e2e
def test_advanced_search_facets_and_text(client):
    r = client.get(f"{API}/search/advanced", params={"categorias": "2", "query": "minero"})
    assert _ids(r.json()["destinos"]) == [3]

    r = client.get(f"{API}/search/advanced", params={"tags": "1", "is_top": "true"})
    data = r.json()
    assert _ids(data["destinos"]) == [2]
    assert data["filters_applied"] == {"tags_count": 1, "is_top": True}


@pytest.mark.e2e
def test_advanced_search_second_call_is_served_from_cache(client):
    params = {"regiones": "1,2", "sort_by": "name", "sort_order": "asc"}
    first = client.get(f"{API}/search/advanced", params=params).json()
    second = client.get(f"{API}/search/advanced", params={**params, "regiones": "2,1"}).json()

    assert first["search_stats"]["cache_hit"] is False
    assert second["search_stats"]["cache_hit"] is True
    assert first["destinos"] == second["destinos"]


@pytest.mark.e2e
@pytest.mark.parametrize("params,field", [
    ({"sort_by": "popularity"}, "sort_by"),
    ({"sort_order": "sideways"}, "sort_order"),
    ({"precio_min": 300, "precio_max": 100}, "precio_max"),
    ({"categorias": "1,2,x"}, "categorias"),
    ({"lat": 95}, "lat"),
    ({"per_page": 500}, "per_page"),
])
def test_advanced_search_validation(client, params, field):
    r = client.get(f"{API}/search/advanced", params=params)
    assert r.status_code == 422
    body = r.json()
    assert body["success"] is False
    assert field in body["errors"]


@pytest.mark.e2e
def test_similar_destinations(client):
    r = client.get(f"{API}/destinos/balneario-el-tephe/similar")
    assert r.status_code == 200
    data = r.json()

    assert data["destino_referencia"]["id"] == 1
    [similar] = data["destinos_similares"]
    assert similar["slug"] == "grutas-tolantongo"
    assert similar["similarity_score"] == 0.6
    assert similar["similarity_factors"] == ["Región", "Categoría", "Tipo de Destino"]


@pytest.mark.e2e
def test_similar_with_lower_threshold(client):
    r = client.get(f"{API}/destinos/balneario-el-tephe/similar", params={"min_score": 0.1, "limit": 20})
    scores = [d["similarity_score"] for d in r.json()["destinos_similares"]]

    assert _ids(r.json()["destinos_similares"]) == [2, 3]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.e2e
@pytest.mark.parametrize("slug", ["no-existe", "borrador"])
def test_similar_unknown_reference_is_404(client, slug):
    r = client.get(f"{API}/destinos/{slug}/similar")
    assert r.status_code == 404
    assert r.json()["error_code"] == "NOT_FOUND"


@pytest.mark.e2e
@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 21}, {"min_score": 0.05}])
def test_similar_rejects_out_of_range(client, params):
    r = client.get(f"{API}/destinos/balneario-el-tephe/similar", params=params)
    assert r.status_code == 422


@pytest.mark.e2e
def test_nearby(client):
    r = client.get(f"{API}/destinos/nearby", params={"latitude": PACHUCA["lat"], "longitude": PACHUCA["lng"], "radius": 20})
    assert r.status_code == 200
    data = r.json()

    assert _ids(data["destinations"]) == [3]
    assert data["total_found"] == 1
    assert data["search_center"]["radius_km"] == 20


@pytest.mark.e2e
def test_nearby_requires_coordinates(client):
    assert client.get(f"{API}/destinos/nearby").status_code == 422


@pytest.mark.e2e
def test_destinos_listing_and_detail(client):
    r = client.get(f"{API}/destinos", params={"region_id": 2, "orden": "rating"})
    assert _ids(r.json()["destinos"]) == [3, 4]

    r = client.get(f"{API}/destinos/real-del-monte")
    assert r.status_code == 200
    assert r.json()["region"] == {"id": 2, "name": "Comarca Minera"}

    assert client.get(f"{API}/destinos/borrador").status_code == 404


@pytest.mark.e2e
def test_top_destinations(client):
    r = client.get(f"{API}/destinos/top")
    assert _ids(r.json()["destinos"]) == [2, 1]


@pytest.mark.e2e
def test_autocomplete(client):
    r = client.get(f"{API}/search/autocomplete", params={"q": "tolan"})
    assert r.status_code == 200
    [suggestion] = r.json()["suggestions"]
    assert suggestion["titulo"] == "Grutas Tolantongo"
    assert suggestion["categoria"] == "Balneario"

    assert client.get(f"{API}/search/autocomplete", params={"q": "a"}).status_code == 422


@pytest.mark.e2e
def test_filters_listing(client):
    data = client.get(f"{API}/filters").json()

    assert {c["name"]: c["count"] for c in data["categorias"]} == {"Aventura": 1, "Balneario": 2, "Pueblo Mágico": 2}
    # inactive characteristic is hidden
    assert [c["name"] for c in data["caracteristicas"]] == ["Gastronomía", "Naturaleza"]
    assert {t["name"]: t["count"] for t in data["tags"]} == {"Aguas termales": 2, "Familiar": 2}


@pytest.mark.e2e
def test_home(client):
    data = client.get(f"{API}/home").json()

    assert _ids(data["top_destinos"]) == [1, 2]
    assert _ids(data["recomendaciones"]) == [1, 3, 2, 4]
    assert _ids(data["regiones_destacadas"]) == [2, 1]


@pytest.mark.e2e
def test_home_hero(client):
    data = client.get(f"{API}/home/hero").json()

    assert data["hero"]["title"] == "Descubre Hidalgo"
    assert _ids(data["featured_destinations"]) == [3, 1]


@pytest.mark.e2e
def test_sections(client):
    sections = {s["slug"]: s for s in client.get(f"{API}/sections").json()["sections"]}
    assert sections["pueblos-magicos"]["destinations_count"] == 2
    assert sections["gastronomia"]["destinations_count"] == 1

    r = client.get(f"{API}/sections/naturaleza", params={"sort_by": "popularidad"})
    assert _ids(r.json()["destinations"]) == [2, 4]

    assert client.get(f"{API}/sections/playas").status_code == 404
    assert client.get(f"{API}/sections/naturaleza", params={"sort_by": "precio"}).status_code == 422


class _BrokenRepository(DestinationRepository):
    def find(self, spec, ordering=(), offset=0, limit=None):
        raise DataAccessError("database query failed")

    def count(self, spec):
        raise DataAccessError("database query failed")


@pytest.mark.e2e
def test_data_access_failure_returns_generic_500(client):
    app.dependency_overrides[get_repository] = lambda: _BrokenRepository()
    r = client.get(f"{API}/search/advanced", params={"query": "broken"})

    assert r.status_code == 500
    assert r.json()["error_code"] == "DATA_ACCESS_ERROR"
    assert "database" not in r.json()["message"]
