"""Command-line interface for bootstage."""

from __future__ import annotations

import asyncio
import logging as logging

from bootstage.cli.app import main as main
from bootstage.cli.commands import demo as demo_command
from bootstage.cli.commands import run as run_command
from bootstage.cli.commands import validate as validate_command
from bootstage.cli.parser import _package_version as _parser_package_version
from bootstage.cli.parser import build_parser as build_parser
from bootstage.config import load_config as load_config
from bootstage.config import validate_stages as validate_stages
from bootstage.demo import DEMO_CONFIG as DEMO_CONFIG
from bootstage.sdk import Bootstage as Bootstage

_format_run_summary = run_command.format_run_summary
_format_validate_summary = validate_command.format_validate_summary

_boot_config = run_command.boot_config
_run_stages = run_command.run_stages
_run_validate = validate_command.run_validate
_run_demo = demo_command.run_demo

_package_version = _parser_package_version
