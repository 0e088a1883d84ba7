"""
Tests for saving and loading raw import results.
"""

import json

import pytest

from planner_bot.models import ImportResult, SourceResult
from planner_bot.raw_store import RawImportLoader, RawLoadError, load_import_result, save_import_result


@pytest.fixture
def result():
    return ImportResult(results={
        'report-grid': SourceResult.success('report-grid', [{'task_type': 'Design Setup', 'project_name': 'Acme'}]),
        'tickets': SourceResult.failure('tickets', 'Data did not load within timeout', 'not-ready-timeout',
                                        diag={'readiness_timeout': True}),
    })


def write_json(path, data):
    path.write_text(json.dumps(data), encoding='utf-8')
    return str(path)


class TestSaveAndLoad:
    """Tests for the saved import file."""

    def test_round_trip_keeps_outcomes(self, tmp_path, result):
        """Test that statuses, errors and records survive saving."""
        path = save_import_result(result, str(tmp_path / 'raw.json'))
        loaded = load_import_result(str(path))

        assert loaded.succeeded() == ['report-grid']
        assert loaded['report-grid'].data == result['report-grid'].data
        assert loaded['tickets'].error_kind == 'not-ready-timeout'
        assert loaded['tickets'].diag == {'readiness_timeout': True}

    def test_save_refuses_overwrite(self, tmp_path, result):
        path = tmp_path / 'raw.json'
        path.write_text('{}')

        with pytest.raises(RawLoadError, match='already exists'):
            save_import_result(result, str(path))

    def test_non_ascii_preserved(self, tmp_path):
        result = ImportResult(results={
            'calendar': SourceResult.success('calendar', [{'label': 'Redesign Launch – Añasco'}]),
        })
        path = save_import_result(result, str(tmp_path / 'raw.json'))

        assert 'Añasco' in path.read_text(encoding='utf-8')


class TestRawImportLoader:
    """Tests for validation of saved imports."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(RawLoadError, match='not found'):
            RawImportLoader(str(tmp_path / 'missing.json'))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'raw.json'
        path.write_text('{not json', encoding='utf-8')

        with pytest.raises(RawLoadError, match='Invalid JSON'):
            load_import_result(str(path))

    def test_empty_object(self, tmp_path):
        with pytest.raises(RawLoadError, match='keyed by source name'):
            load_import_result(write_json(tmp_path / 'raw.json', {}))

    def test_unknown_source(self, tmp_path):
        data = {'fax': {'source': 'fax', 'status': 'success', 'data': []}}
        with pytest.raises(RawLoadError, match="Unknown source 'fax'"):
            load_import_result(write_json(tmp_path / 'raw.json', data))

    def test_mismatched_source(self, tmp_path):
        data = {'calendar': {'source': 'tickets', 'status': 'success', 'data': []}}
        with pytest.raises(RawLoadError, match='mismatched source'):
            load_import_result(write_json(tmp_path / 'raw.json', data))

    def test_invalid_status(self, tmp_path):
        data = {'calendar': {'source': 'calendar', 'status': 'maybe', 'data': []}}
        with pytest.raises(RawLoadError, match='invalid status'):
            load_import_result(write_json(tmp_path / 'raw.json', data))

    def test_non_list_data(self, tmp_path):
        data = {'calendar': {'source': 'calendar', 'status': 'success', 'data': 'oops'}}
        with pytest.raises(RawLoadError, match='non-list data'):
            load_import_result(write_json(tmp_path / 'raw.json', data))
