"""Pure aggregation package for metricboard.

This package turns a timestamp-ordered record stream into chart timelines and
pivot tables. It must not import Django or perform any database I/O.
"""

from .axes import AxisSwitch, assign_axes, assign_axis
from .buckets import Granularity, iter_buckets, parse_granularity, truncate_date
from .engine import AggregationEngine
from .predicates import FilterToken, PredicateRegistry, decode_token, encode_token

__all__ = [
    "AggregationEngine",
    "AxisSwitch",
    "FilterToken",
    "Granularity",
    "PredicateRegistry",
    "assign_axes",
    "assign_axis",
    "decode_token",
    "encode_token",
    "iter_buckets",
    "parse_granularity",
    "truncate_date",
]
