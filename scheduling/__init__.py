"""Scheduling port and the schedulers shipped with the client"""
from .base import BaseScheduler, ScheduledJob
from .cadence import CronCadence, DailyCadence, IntervalCadence, parse_cadence, parse_duration
from .manual import ManualScheduler
from .threaded import ThreadedScheduler

__all__ = [
    'BaseScheduler',
    'ScheduledJob',
    'CronCadence',
    'DailyCadence',
    'IntervalCadence',
    'parse_cadence',
    'parse_duration',
    'ManualScheduler',
    'ThreadedScheduler'
]
