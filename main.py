# main.py
import argparse
import sys

from config.config_loader import ConfigLoader
from config.run_config import RunConfig
from connectors.errors import ServerPilotError, ConfigurationError, LaunchError
from orchestrator.server_run import (
    ServerRun,
    configure_root_logger,
    run_deploy,
    run_status,
    run_undeploy,
)
from utils.version import get_version


def load_config(args) -> RunConfig:
    loader = ConfigLoader(args.config_dir)
    data = loader.load(env_name=args.environment, explicit_path=args.config)
    return RunConfig.from_dict(data, remote=args.remote or None)


def cmd_start(args):
    config = load_config(args)
    overrides = {
        "daemon": args.daemon,
        "auto_deploy": args.auto_deploy,
        "trim_log": args.trim_log,
        "ai_agent": args.ai_agent,
    }
    for key, value in overrides.items():
        if value:
            setattr(config.run, key, True)
    if args.no_browser:
        config.run.browser = False
    return ServerRun(config).execute()


def cmd_deploy(args):
    return run_deploy(load_config(args))


def cmd_undeploy(args):
    return run_undeploy(load_config(args))


def cmd_status(args):
    return run_status(load_config(args))


def cmd_envs(args):
    envs = ConfigLoader(args.config_dir).list_environments()
    if not envs:
        print(f"No environments under {args.config_dir}")
        return 0
    for name in envs:
        print(name)
    return 0


def _add_common(p):
    p.add_argument("--environment", "-e", type=str, help="Environment: config/<env>/<env>.yaml")
    p.add_argument("--config", type=str, help="Explicit YAML file or directory")
    p.add_argument("--config-dir", type=str, default="config", help="Directory holding defaults.yaml")
    p.add_argument("--remote", action="store_true", help="Manage a remote instance over the admin API")


def build_parser():
    p = argparse.ArgumentParser(prog="serverpilot", description="serverpilot - run, deploy to and query an application server")
    p.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    sp = p.add_subparsers(dest="cmd")

    # start
    ps = sp.add_parser("start", help="Start (or attach to) the server, deploy and open an interactive session.")
    _add_common(ps)
    ps.add_argument("--daemon", action="store_true", help="Leave the server running in the background")
    ps.add_argument("--auto-deploy", action="store_true", help="Redeploy when the exploded application changes")
    ps.add_argument("--trim-log", action="store_true", help="Shorten server log records")
    ps.add_argument("--ai-agent", action="store_true", help="Send free-text questions to the assistant")
    ps.add_argument("--no-browser", action="store_true", help="Do not open the application in a browser")
    ps.set_defaults(func=cmd_start)

    # deploy
    pd = sp.add_parser("deploy", help="Redeploy the application to a running server")
    _add_common(pd)
    pd.set_defaults(func=cmd_deploy)

    # undeploy
    pu = sp.add_parser("undeploy", help="Undeploy the application")
    _add_common(pu)
    pu.set_defaults(func=cmd_undeploy)

    # status
    pst = sp.add_parser("status", help="Show whether the server runs and what is deployed")
    _add_common(pst)
    pst.set_defaults(func=cmd_status)

    # envs
    pe = sp.add_parser("envs", help="List the environments found in the config directory")
    pe.add_argument("--config-dir", type=str, default="config", help="Directory holding defaults.yaml")
    pe.set_defaults(func=cmd_envs)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return 0

    configure_root_logger()
    try:
        return args.func(args) or 0
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except LaunchError as e:
        print(f"Launch error: {e}", file=sys.stderr)
        return e.exit_code if isinstance(e.exit_code, int) and e.exit_code > 0 else 1
    except ServerPilotError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
