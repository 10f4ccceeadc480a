#!/usr/bin/env python3
"""
Host state collection from the command line.

Prints the {success, data, timestamp} envelope as JSON on stdout; logging
goes to stderr (and log files when enabled in hoststate.yml).
"""

import sys
import argparse
import json
from datetime import datetime

import yaml

from hoststate.utils.logging_config import setup_logging, get_logger
from hoststate.config.settings import initialize_config
from hoststate.collectors import HostCollector, ToolProber, FAMILY_COLLECTORS
from hoststate.actions import ActionRunner, ActionValidationError


def run_collect(config, families, name):
    collector = HostCollector(name=name, config_manager=config, families=families)
    if families and len(families) == 1:
        result = collector.collect_family(families[0])
    else:
        result = collector.collect()
    return result.envelope(), result.success


def run_detect(config, name):
    """Probe tool availability without collecting anything"""
    collector = HostCollector(name=name, config_manager=config)
    collector.connect()
    try:
        capabilities = ToolProber(collector.connector).detect_all()
    finally:
        collector.connector.close()

    envelope = {
        'success': True,
        'data': capabilities.to_dict(),
        'timestamp': datetime.now().isoformat()
    }
    return envelope, True


def run_action(config, name, action, params_text):
    try:
        params = json.loads(params_text) if params_text else {}
    except json.JSONDecodeError as e:
        return {'success': False, 'error': f"Invalid --params JSON: {e}",
                'timestamp': datetime.now().isoformat()}, False
    if not isinstance(params, dict):
        return {'success': False, 'error': '--params must be a JSON object',
                'timestamp': datetime.now().isoformat()}, False

    collector = HostCollector(name=name, config_manager=config)
    collector.connect()
    try:
        runner = ActionRunner(collector.connector, settings=config.engine)
        result = runner.run(action, params)
    except ActionValidationError as e:
        return {'success': False, 'error': str(e), 'timestamp': datetime.now().isoformat()}, False
    finally:
        collector.connector.close()

    envelope = {
        'success': result.success,
        'data': result.to_dict(),
        'timestamp': datetime.now().isoformat()
    }
    if result.error:
        envelope['error'] = result.error
    return envelope, result.success


def main(argv=None) -> int:
    """Main function with command line arguments"""
    parser = argparse.ArgumentParser(description='Host state introspection')
    parser.add_argument('command', nargs='?', default='collect',
                        choices=['collect', 'detect', 'action'],
                        help='What to do')
    parser.add_argument('--family', action='append', choices=sorted(FAMILY_COLLECTORS),
                        help='Fact family to collect (repeatable; default: all)')
    parser.add_argument('--config', help='Path to hoststate.yml')
    parser.add_argument('--name', default='localhost', help='Name reported for this host')
    parser.add_argument('--action', help="Action name for the 'action' command")
    parser.add_argument('--params', help='Action parameters as a JSON object')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args(argv)

    try:
        config = initialize_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        log_level=config.logging.level,
        enable_debug=args.debug or config.logging.debug,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir
    )
    logger = get_logger('collection_main')

    if args.command == 'action' and not args.action:
        parser.error("the 'action' command requires --action")

    try:
        if args.command == 'action':
            envelope, ok = run_action(config, args.name, args.action, args.params)
        elif args.command == 'detect':
            envelope, ok = run_detect(config, args.name)
        else:
            envelope, ok = run_collect(config, args.family, args.name)
    except ConnectionError as e:
        envelope = {'success': False, 'error': str(e), 'timestamp': datetime.now().isoformat()}
        ok = False

    if not ok:
        logger.error(envelope.get('error', 'Command failed'))

    print(json.dumps(envelope, indent=2, default=str))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
