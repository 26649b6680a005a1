from drf_spectacular.generators import SchemaGenerator


def test_schema_tag_grouping(db):
    generator = SchemaGenerator()
    schema = generator.get_schema(request=None, public=True)
    paths = schema["paths"]
    expected = {
        "/api/v1/events/{event_id}/preregistrations/": "Pre-registration",
        "/api/v1/events/{event_id}/preregistrations/search/": "Pre-registration",
        "/api/v1/events/{event_id}/preregistrations/{id}/convert/": (
            "Pre-registration"
        ),
        "/api/v1/events/{event_id}/participants/": "Participants",
        "/api/v1/events/{event_id}/stats/": "Participants",
        "/api/v1/events/{event_id}/stream/": "Realtime",
        "/api/v1/auth/jwt/create/": "Authentication",
    }
    for path, tag in expected.items():
        if path not in paths:
            continue
        for operation in paths[path].values():
            assert operation["tags"] == [tag], path
    assert "/api/v1/events/{event_id}/participants/" in paths
    assert "/api/v1/auth/jwt/create/" in paths
    declared = [t["name"] for t in schema["tags"]]
    assert declared.count("Pre-registration") == 1
