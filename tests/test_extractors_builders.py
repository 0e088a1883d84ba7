"""
Tests for turning page snapshots into source records.

These cover the pure record builders behind the page extractors; the DOM
reading itself is covered by test_extractors_dom.py.
"""

import asyncio

from planner_bot.extractors import (
    VARIANT_LEGACY,
    VARIANT_REVISION,
    build_calendar_records,
    build_card_records,
    build_fixed_column_records,
    build_generic_ticket_record,
    build_header_mapped_records,
    build_header_mapped_tickets,
    build_revision_record,
    build_wave_records,
    collect_revision_records,
)


def wave_cell(text='', aria_label='', link_href='', link_data_id='', tooltip=''):
    return {'text': text, 'aria_label': aria_label, 'link_href': link_href,
            'link_data_id': link_data_id, 'tooltip': tooltip}


def project_cell(name, record_id):
    return wave_cell(text=name, aria_label=f"Project (Rollup): Project Name: {name}",
                     link_href=f"/lightning/r/{record_id}/view", link_data_id=record_id)


def tag_cell(tag):
    return wave_cell(text=tag, aria_label=f"Project (Rollup): Tag: {tag}")


class TestWaveRecords:
    """Tests for build_wave_records."""

    def rows(self):
        return [
            {'header': True, 'cells': [], 'text': ''},
            {'header': False, 'text': '2/10/2026 Design Setup Acme', 'cells': [
                wave_cell(text='2/10/2026', aria_label='End Date: 2/10/2026'),
                wave_cell(text='Design Setup', aria_label='Task: Design Setup', link_data_id='t1'),
                project_cell('Acme | Ultimate Redesign', 'a01'),
                tag_cell('Launch 2/12'),
            ]},
            {'header': False, 'text': 'Beta', 'cells': [
                project_cell('Beta | Premium Redesign', 'a02'),
                tag_cell(''),
            ]},
            {'header': False, 'text': 'Website Launch Gamma', 'cells': [
                wave_cell(text='Website Launch', link_data_id='t2'),
                project_cell('Gamma | Redesign', 'a03'),
                tag_cell('Launch 2/12 at 1 pm'),
            ]},
            {'header': False, 'text': 'Grand Total (3)', 'cells': [wave_cell(text='Grand Total (3)')]},
        ]

    def test_records_and_counts(self):
        records, counts = build_wave_records(self.rows())

        assert len(records) == 3
        assert counts == {'processed_rows': 3, 'skipped_rows': 2}

    def test_full_row(self):
        record = build_wave_records(self.rows())[0][0]

        assert record['end_date'] == '2/10/2026'
        assert record['task_type'] == 'Design Setup'
        assert record['task_id'] == 't1'
        assert record['project_name'] == 'Acme | Ultimate Redesign'
        assert record['project_id'] == 'a01'
        assert record['tag'] == 'Launch 2/12'

    def test_missing_group_cells_carried(self):
        """Test that rows without the grouped cells inherit them."""
        records = build_wave_records(self.rows())[0]

        assert records[1]['end_date'] == '2/10/2026'
        assert records[1]['task_type'] == 'Design Setup'
        assert records[1]['project_id'] == 'a02'

    def test_new_task_group(self):
        """Test that a row missing only the end date starts a new task group."""
        record = build_wave_records(self.rows())[0][2]

        assert record['end_date'] == '2/10/2026'
        assert record['task_type'] == 'Website Launch'
        assert record['task_id'] == 't2'

    def test_rows_before_groups_skipped(self):
        rows = [
            {'header': False, 'text': 'x', 'cells': [project_cell('Orphan', 'a00')]},
            {'header': False, 'text': 'y', 'cells': [
                wave_cell(text='2/11/2026'), wave_cell(text='Design Setup'), project_cell('Acme', 'a01'),
            ]},
        ]
        records, counts = build_wave_records(rows)
        assert [r['project_name'] for r in records] == ['Acme']
        assert counts['skipped_rows'] == 1

    def test_project_name_from_last_cell(self):
        """Test the fallback when no cell has a project label."""
        rows = [{'header': False, 'text': '', 'cells': [
            wave_cell(text='2/11/2026'), wave_cell(text='Design Setup'), wave_cell(tooltip='Delta | Redesign'),
        ]}]
        records, _ = build_wave_records(rows)
        assert records[0]['project_name'] == 'Delta | Redesign'


class TestFixedColumnRecords:
    """Tests for the legacy report layout."""

    def test_group_columns_and_counts(self):
        rows = [
            {'fixed': ['2/10/2026 (2)', 'Design Setup (2)'],
             'data': ['Acme | Redesign', 'Blue', 'Launch 2/12', 'Needs logo', 'Jane']},
            {'fixed': ['', ''], 'data': ['Beta | Redesign', '', '', '', '']},
            {'fixed': ['Total (2)', ''], 'data': ['Total', '', '', '', '']},
        ]
        records = build_fixed_column_records(rows)

        assert len(records) == 2
        assert records[0]['end_date'] == '2/10/2026'
        assert records[0]['task_type'] == 'Design Setup'
        assert records[0]['owner_name'] == 'Jane'
        assert records[1]['task_type'] == 'Design Setup'
        assert records[1]['tag'] == ''


class TestHeaderMappedRecords:
    """Tests for the header-matching report fallback."""

    def test_mapped_columns(self):
        headers = ['End Date', 'Task Type', 'Project Name', 'Color', 'Tag', 'Setup Notes']
        rows = [
            ['2/10', 'Design Setup', 'Acme | Redesign', 'Blue', '', ''],
            ['', '', 'Beta | Redesign', '', 'Launch 2/12', ''],
            ['too', 'short'],
            ['', '', 'Total', '', '', ''],
        ]
        records = build_header_mapped_records(headers, rows)

        assert [r['project_name'] for r in records] == ['Acme | Redesign', 'Beta | Redesign']
        assert records[1]['end_date'] == '2/10'
        assert records[1]['task_type'] == 'Design Setup'
        assert records[1]['tag'] == 'Launch 2/12'

    def test_default_column_order(self):
        records = build_header_mapped_records([], [['2/10', 'Launch', 'Acme | Redesign', '', 'Launch 2/10']])
        assert records[0]['task_type'] == 'Launch'
        assert records[0]['tag'] == 'Launch 2/10'


class TestTicketRecords:
    """Tests for ticket record builders."""

    def test_revision_record(self):
        snapshot = {
            'name': 'T-100',
            'project': 'Acme County | Premium Redesign',
            'description': 'Design Revisions R2 - 2 hours (JD)',
            'due_date': '2/11/2026',
            'completed': False,
        }
        record = build_revision_record(snapshot)

        assert record['variant'] == VARIANT_REVISION
        assert record['hours'] == 2.0
        assert record['revision_label'] == 'Design Revisions R2'
        assert record['assignees'] == ['JD']
        assert record['status'] == 'ok'

    def test_revision_record_needs_name(self):
        assert build_revision_record({'name': 'x'}) is None

    def test_header_mapped_tickets(self):
        headers = ['Due Date', 'Name', 'Project', 'Description', 'Hours']
        rows = [
            ['2/11', 'T-1', 'Acme County', 'Fix header', '2'],
            ['2/12', 'T-2', 'Beta', 'Design Revisions - 3 hours', ''],
            ['', '', 'Total', '', ''],
        ]
        records = build_header_mapped_tickets(headers, rows)

        assert [r['project_name'] for r in records] == ['Acme County', 'Beta']
        assert records[0]['estimated_hours'] == 2.0
        assert records[1]['estimated_hours'] == 3.0
        assert all(r['variant'] == VARIANT_LEGACY for r in records)

    def test_header_mapped_tickets_other_table(self):
        assert build_header_mapped_tickets(['Name', 'Owner'], [['a', 'b', 'c']]) == []

    def test_generic_row(self):
        record = build_generic_ticket_record(
            ['Acme County', 'Revision R1', 'x', '1.5', '2/12/2026'], 'Acme County Revision R1'
        )
        assert record['estimated_hours'] == 1.5
        assert record['due_date'] == '2/12/2026'
        assert record['description'] == 'Revision R1'

    def test_generic_row_rejected(self):
        assert build_generic_ticket_record(['Acme'], 'Acme') is None
        assert build_generic_ticket_record(['Total', '4'], 'Total 4') is None
        assert build_generic_ticket_record(['A', 'Revision'], 'A Revision') is None

    def test_hours_with_unit(self):
        """Test that hour cells such as "2.5 hrs" keep their estimate."""
        generic = build_generic_ticket_record(
            ['Gamma City', 'Design Revisions', '2.5 hrs', '2/12'], 'Gamma City Design Revisions 2.5 hrs 2/12'
        )
        mapped = build_header_mapped_tickets(
            ['Due Date', 'Name', 'Project', 'Hours'], [['2/12', 'T-7', 'Gamma City', '1.5h']]
        )

        assert generic['estimated_hours'] == 2.5
        assert generic['due_date'] == '2/12'
        assert mapped[0]['estimated_hours'] == 1.5

    def test_stale_row_skipped(self):
        """Test that a row failing mid-read is skipped and the other rows are kept."""
        snapshots = {
            'r1': {'name': 'T-100', 'project': 'Acme County', 'description': 'Design Revisions R1 - 2 hours'},
            'r3': {'name': 'T-102', 'project': 'Beta', 'description': 'Design Revisions R2 - 1 hour'},
        }

        async def snapshot_row(row):
            if row == 'r2':
                raise RuntimeError('Element is not attached to the DOM')
            return snapshots[row]

        diag = {}
        records = asyncio.run(collect_revision_records(['r1', 'r2', 'r3'], diag, snapshot_row=snapshot_row))

        assert [r['name'] for r in records] == ['T-100', 'T-102']
        assert diag['skipped_rows'] == 1

    def test_card_records(self):
        """Test that chrome is dropped and repeated cards kept once."""
        texts = [
            'Acme County – Design Revisions',
            'Acme County – Design Revisions',
            'DashboardsDashboardsDashboardsDashboards',
            'tiny',
        ]
        records = build_card_records(texts)

        assert len(records) == 1
        assert records[0]['project_name'] == 'Acme County – Design Revisions'
        assert records[0]['estimated_hours'] == 1


class TestCalendarRecords:
    """Tests for build_calendar_records."""

    def test_deduplicated(self):
        labels = ['Standup, Feb 10, 2026', 'Standup, Feb 10, 2026', '', None]
        assert build_calendar_records(labels, require_time=False) == [{'label': 'Standup, Feb 10, 2026'}]

    def test_require_time(self):
        labels = ['Standup, February 10, 2026, 9:00 AM, 9:15 AM', 'Calendar navigation']
        records = build_calendar_records(labels, require_time=True)
        assert records == [{'label': 'Standup, February 10, 2026, 9:00 AM, 9:15 AM'}]
