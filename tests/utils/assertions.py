"""Custom assertion helpers."""

import json
from typing import Any, Dict


def assert_valid_response(response: Dict[str, Any], expected_status: int = 200) -> None:
    """Assert that a handler response is well formed."""
    assert 'statusCode' in response
    assert response['statusCode'] == expected_status
    assert 'headers' in response
    assert 'body' in response

    if response['body'] and 'application/json' in response.get('headers', {}).get('Content-Type', ''):
        try:
            json.loads(response['body'])
        except json.JSONDecodeError:
            assert False, "Response body is not valid JSON"


def assert_valid_pagination(envelope: Dict[str, Any]) -> None:
    """Assert the listing envelope keys and their consistency."""
    for key in ('limit', 'page', 'pages', 'total', 'prevPage', 'nextPage'):
        assert key in envelope
    assert 'skip' not in envelope
    assert 1 <= envelope['limit'] <= 200
    assert envelope['page'] >= 1
    if envelope['prevPage'] is not None:
        assert envelope['prevPage'] == envelope['page'] - 1
    if envelope['nextPage'] is not None:
        assert envelope['nextPage'] == envelope['page'] + 1


def assert_valid_variant_set(variant_set: Any) -> None:
    """Assert the naming convention of a stored variant set."""
    names = variant_set['names'] if isinstance(variant_set, dict) else variant_set.names
    source_name = variant_set['sourceName'] if isinstance(variant_set, dict) else variant_set.source_name
    assert names
    assert source_name == names[-1]
    widths = [int(name.rsplit('-', 1)[-1]) for name in names]
    assert widths == sorted(widths)
    bases = {name.rsplit('-', 1)[0] for name in names}
    assert len(bases) == 1
