import argparse

from src.schemas import Plan

def get_base_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Process podcast uploads into transcripts and generated content")
    parser.add_argument("-e", "--env-file", help="Path to a custom .env file", default=None)
    return parser

def add_dry_run_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-d", "--dry-run", action="store_true", help="Perform a dry run without making changes")

def add_log_level_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-l", "--log-level", help="Set log level (DEBUG, INFO, WARNING, ERROR)", default="INFO")

def add_user_id_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-u", "--user-id", help="Owner of the project", required=True)

def add_plan_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--plan", choices=[p.value for p in Plan], default=Plan.FREE.value, help="Plan tier of the caller")
