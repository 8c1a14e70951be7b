import pytest

from apps.core.config_cache import clear_yaml_cache
from apps.core.exceptions import NotFoundError, ValidationError
from apps.destinations.services.catalog import DirectoryCatalog
from apps.destinations.services.nearby import NearbySearch
from apps.destinations.services.sections import HomeService, SectionDefinition, load_sections

PACHUCA = (20.1011, -98.7591)


@pytest.fixture
def catalog(repository, images):
    return DirectoryCatalog(repository, images)


def test_autocomplete_ranks_name_prefix_first(catalog):
    suggestions = catalog.autocomplete("gr")
    assert [s["slug"] for s in suggestions][0] == "grutas-tolantongo"


def test_autocomplete_matches_related_names_newest_first(catalog):
    suggestions = catalog.autocomplete("mezquital")
    assert [s["id"] for s in suggestions] == [2, 1]
    assert suggestions[0]["region"] == "Valle del Mezquital"
    # main image missing, first image used
    assert suggestions[0]["imagen_principal"] == "https://img.example.com/tolantongo.jpg"


def test_autocomplete_requires_two_characters(catalog):
    with pytest.raises(ValidationError):
        catalog.autocomplete("a")


def test_filters_only_list_facets_with_published_destinations(catalog):
    facets = catalog.filters()

    categories = {c["name"]: c["count"] for c in facets["categorias"]}
    assert categories == {"Aventura": 1, "Balneario": 2, "Pueblo Mágico": 2}
    assert [r["count"] for r in facets["regiones"]] == [2, 2]
    assert [p["value"] for p in facets["price_ranges"]] == ["gratis", "economico", "moderado", "premium"]


def test_top_is_newest_first_and_capped(catalog):
    assert [d["id"] for d in catalog.top(limit=500)] == [2, 1]


def test_listing_geo_with_distance_order(catalog):
    payload = catalog.listing(latitude=PACHUCA[0], longitude=PACHUCA[1], radius_km=100, orden="distancia")

    assert [d["id"] for d in payload["destinos"]] == [3, 1, 2]
    assert all("distancia_km" in d for d in payload["destinos"])


def test_listing_popularity_order(catalog):
    payload = catalog.listing(orden="popularidad")
    assert [d["id"] for d in payload["destinos"]] == [2, 1, 3, 4]


def test_detail_hides_unpublished(catalog):
    assert catalog.detail("real-del-monte")["titulo"] == "Real del Monte"
    with pytest.raises(NotFoundError):
        catalog.detail("borrador")


def test_nearby_returns_closest_first(repository, images):
    payload = NearbySearch(repository, images).find(*PACHUCA, radius_km=100)

    assert [d["id"] for d in payload["destinations"]] == [3, 1, 2]
    assert payload["total_found"] == 3
    assert payload["search_center"] == {"latitude": PACHUCA[0], "longitude": PACHUCA[1], "radius_km": 100}


def test_nearby_filters_and_limit(repository, images):
    search = NearbySearch(repository, images)

    assert [d["id"] for d in search.find(*PACHUCA, radius_km=100, category_id=1)["destinations"]] == [1, 2]
    assert [d["id"] for d in search.find(*PACHUCA, radius_km=100, min_rating=4.6)["destinations"]] == [1]
    limited = search.find(*PACHUCA, radius_km=100, limit=1)
    assert len(limited["destinations"]) == 1
    assert limited["total_found"] == 3


@pytest.mark.parametrize("kwargs", [{"radius_km": 0}, {"limit": 51}, {"latitude": 95}])
def test_nearby_rejects_invalid_input(repository, images, kwargs):
    params = {"latitude": PACHUCA[0], "longitude": PACHUCA[1], **kwargs}
    with pytest.raises(ValidationError):
        NearbySearch(repository, images).find(**params)


SECTIONS = [
    SectionDefinition("pueblos-magicos", "Pueblos Mágicos", "", "category", ("Pueblo Mágico",)),
    SectionDefinition("naturaleza", "Naturaleza", "", "characteristic", ("Naturaleza", "Cascadas")),
]


@pytest.fixture
def home_service(repository, images):
    return HomeService(repository, images, sections=SECTIONS)


def test_home_aggregation(home_service):
    payload = home_service.home()

    assert [d["id"] for d in payload["top_destinos"]] == [1, 2]
    assert [d["id"] for d in payload["recomendaciones"]] == [1, 3, 2, 4]
    assert [r["id"] for r in payload["regiones_destacadas"]] == [2, 1]
    assert [t["name"] for t in payload["tags_populares"]] == ["Aguas termales", "Familiar"]


def test_hero_lists_published_featured_newest_first(repository, images):
    service = HomeService(repository, images, sections=SECTIONS, hero_copy={"title": "Descubre Hidalgo"})
    payload = service.hero()

    assert payload["hero"] == {"title": "Descubre Hidalgo"}
    # the featured draft stays hidden
    assert [d["id"] for d in payload["featured_destinations"]] == [3, 1]


def test_sections_index_counts(home_service):
    index = {s["slug"]: s for s in home_service.sections_index()}

    assert index["pueblos-magicos"]["destinations_count"] == 2
    assert [d["id"] for d in index["pueblos-magicos"]["destinations"]] == [1, 3]
    assert index["naturaleza"]["destinations_count"] == 2


def test_section_listing_sorting(home_service):
    by_rating = home_service.section_listing("naturaleza")
    assert [d["id"] for d in by_rating["destinations"]] == [2, 4]

    by_distance = home_service.section_listing("pueblos-magicos", sort_by="distancia",
                                               latitude=PACHUCA[0], longitude=PACHUCA[1])
    assert [d["id"] for d in by_distance["destinations"]] == [3, 1]
    assert by_distance["pagination"] == {"total": 2, "limit": 12, "offset": 0, "has_more": False}


def test_unknown_section(home_service):
    with pytest.raises(NotFoundError):
        home_service.section_listing("playas")


def test_section_definition_validation():
    with pytest.raises(ValueError):
        SectionDefinition("x", "X", "", "region", ("a",))


def test_load_sections_from_yaml(tmp_path):
    clear_yaml_cache()
    path = tmp_path / "sections.yml"
    path.write_text(
        "sections:\n"
        "  - slug: cultura\n"
        "    title: Cultura\n"
        "    match: characteristic\n"
        "    names: [Historia, Museos]\n",
        encoding="utf-8",
    )

    [section] = load_sections(str(path))

    assert section.slug == "cultura"
    assert section.names == ("Historia", "Museos")
    assert load_sections(str(tmp_path / "missing.yml")) == []
