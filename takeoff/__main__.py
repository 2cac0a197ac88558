"""Entry point for ``python -m takeoff <command>``.

Commands:
    aggregate – derive state (latest date, closed history) from JSONL logs
    prepare   – build the provider request for a history
    call      – stream a prepared request from Gemini (optionally recording a tape)
    parse     – turn a saved model response into JSONL events
    replay    – forecast from a recorded tape
    record    – forecast live from Gemini and record the session as a tape
    turn      – run one full player + game-master turn
"""
from takeoff.cli import main

if __name__ == "__main__":
    main()
