import traceback
import sys
import pathlib

# Ensure local `src` directory is on sys.path so imports work when running this script directly.
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1] / "src"))

try:
    from startupbox.config import AppConfig
    from startupbox.llm.provider import StaticResponseProvider
    from startupbox.orchestration.orchestrator import Orchestrator

    config = AppConfig.from_file("configs/launch_offline.yaml")
    provider = StaticResponseProvider(
        [
            "INTENT: launch a developer tool\nCOMPLEXITY: complex\nAGENTS: market-analyst, branding, content\n"
            "CONFIDENCE: 72\nTIME: 20 minutes\nSUBTASKS: see below",
            "1. Size the market for developer tools\n2. Name the product\n3. Draft the launch post",
        ]
    )
    o = Orchestrator.from_config(config, provider=provider)
    session = o.new_session("offline-key")
    print('Agents:', [p.agent.value for p in config.profiles().values()])
    print('Running...')
    result = o.orchestrate(session, "Launch my developer tool", on_progress=lambda a, s: print(f"  {a.value}: {s}"))
    print('Outputs:')
    for item in result.results:
        print(f"- {item.agent.value} [{item.status}]: {item.output!r}")
    print('Credits left:', session.credits)
except Exception:
    traceback.print_exc()
