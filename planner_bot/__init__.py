"""
Planner Bot - Weekly schedule import from the CRM report, ticketing app and calendar.

This package extracts work assignments from three web applications with
Playwright, normalizes them into schedule items and merges them into one
weekly plan.
"""

__version__ = '1.0.0'
__author__ = 'Planner Automation'

from .models import ScheduleItem, SourceResult, ImportResult
from .config import Config
from .merge import merge_imported_items, merge_import_result
from .orchestrator import import_all, run_import_operation

__all__ = [
    'ScheduleItem',
    'SourceResult',
    'ImportResult',
    'Config',
    'merge_imported_items',
    'merge_import_result',
    'import_all',
    'run_import_operation',
]
