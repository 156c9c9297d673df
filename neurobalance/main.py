"""NeuroBalance: train, evaluate or hand-drive a cart-pole balancing agent.

This is a *thin* CLI entry point. All of the "beef" lives elsewhere:
  - physics + reward:   environment/
  - PPO / Double DQN:   training/ppo.py, training/dqn.py
  - orchestration:      orchestrator.py
  - saved models:       training/checkpoint.py

So when you read this file, you should mostly see:
  1) parse args
  2) build a trainer + orchestrator
  3) run it and print what happened
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import random
import time

import numpy as np
import torch

from .config import DQN_CONFIG, PATHS, PPO_CONFIG, SESSION_CONFIG, TRAIN_CONFIG
from .environment import LEFT, RIGHT
from .orchestrator import EpisodeOrchestrator
from .session import ControlMode, EpisodeSummary, Learning, Pilot
from .training import TRAINERS, ModelStore, PersistenceError, make_trainer
from .training.eval import evaluate
from .utils import plot_reward_history, print_episode_info


def seed_everything(seed: int) -> None:
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def build_trainer(args: argparse.Namespace):
    device = torch.device("cuda" if torch.cuda.is_available() and not args.cpu else "cpu")
    kwargs = {"device": device}
    if args.lr is not None:
        kwargs["lr"] = args.lr
    if args.algorithm == "ppo":
        kwargs["epochs"] = args.epochs
        kwargs["rng"] = torch.Generator().manual_seed(args.seed)
    else:
        kwargs["rng"] = random.Random(args.seed)
        kwargs["batch_size"] = args.batch_size
        kwargs["train_steps"] = args.train_steps
    return make_trainer(args.algorithm, **kwargs)


# ─────────────────────────────────────────────────────────────────────────────
# Modes
# ─────────────────────────────────────────────────────────────────────────────

def run_train(args: argparse.Namespace) -> None:
    seed_everything(args.seed)
    store = ModelStore(args.models_dir)
    trainer = build_trainer(args)

    orch = EpisodeOrchestrator(
        trainer,
        store=store,
        max_steps=args.max_steps,
        speed=args.speed,
        seed=args.seed,
    )

    if args.resume:
        asyncio.run(orch.load_model(args.resume, learning=Learning.LEARNING))
        print(f"  Resumed from {args.resume}")

    def on_episode(summary: EpisodeSummary) -> None:
        if args.log_interval > 0 and summary.episode % args.log_interval == 0:
            extra = ""
            if hasattr(orch.trainer, "epsilon"):
                extra = f"ε={orch.trainer.epsilon:.3f}"
            print_episode_info(
                summary.episode,
                summary.reward,
                summary.steps,
                summary.high_score,
                orch.session.recent_average(),
                extra,
            )

    orch.on_episode = on_episode

    print("=" * 70)
    print(f"  NEUROBALANCE TRAINING: {args.algorithm.upper()}")
    print("=" * 70)
    print(f"  Episodes:          {args.episodes}")
    print(f"  Max steps/episode: {args.max_steps}")
    print(f"  Speed:             {args.speed}x")
    print(f"  Seed:              {args.seed}")
    print("=" * 70 + "\n")

    start = time.time()
    asyncio.run(orch.run(episodes=args.episodes, fps=args.fps))
    elapsed = time.time() - start

    print("\n" + "=" * 70)
    print("  TRAINING COMPLETE")
    print("=" * 70)
    print(f"  Episodes:   {orch.session.episode}")
    print(f"  High score: {orch.session.high_score:.1f}")
    print(f"  Avg (L10):  {orch.session.recent_average():.1f}")
    print(f"  Time:       {elapsed:.1f}s ({elapsed/60:.1f} min)")

    if args.save:
        path = asyncio.run(orch.save_model(args.save))
        print(f"  [Model → {path}]")

    if args.plot:
        plot_reward_history(
            orch.session.reward_history,
            window=SESSION_CONFIG["recent_window"],
            save_path=os.path.join(PATHS["plots_dir"], f"{args.algorithm}_rewards.png"),
            title=f"{args.algorithm.upper()} learning curve",
        )


def run_eval(args: argparse.Namespace) -> None:
    seed_everything(args.seed)
    store = ModelStore(args.models_dir)
    trainer = build_trainer(args)
    store.load(args.model, trainer)
    print(f"Loaded {args.algorithm} model '{args.model}'")

    result = evaluate(trainer, n_episodes=args.episodes, max_steps=args.max_steps, seed=args.seed)
    print(
        f"  AvgReward={result['avg_reward']:.1f} │ "
        f"AvgSteps={result['avg_steps']:.1f} │ "
        f"Range=[{result['min_steps']}, {result['max_steps']}] │ "
        f"Survived={result['survival_rate']*100:.0f}%"
    )


def run_manual(args: argparse.Namespace) -> None:
    """
    Manual control via console:
    - type 0 (or a) for left, 1 (or d) for right
    - type "push <force>" to nudge the cart before the next step
    - type q to quit
    """
    trainer = build_trainer(args)
    orch = EpisodeOrchestrator(
        trainer,
        mode=ControlMode(pilot=Pilot.HUMAN_OVERRIDE, learning=Learning.INFERENCE),
        max_steps=args.max_steps,
        seed=args.seed,
    )
    keys = {"0": LEFT, "a": LEFT, "1": RIGHT, "d": RIGHT}

    print("\nManual play: 0/a (left), 1/d (right), 'push <force>', q to quit.")
    orch.play()
    episodes_done = 0
    while episodes_done < args.episodes:
        cmd = input("Action: ").strip().lower()
        if cmd == "q":
            break
        if cmd.startswith("push"):
            try:
                orch.apply_force(float(cmd.split()[1]))
            except (IndexError, ValueError):
                print("Usage: push <force>")
            continue
        if cmd not in keys:
            print("Please type 0/a or 1/d.")
            continue

        orch.set_override_action(keys[cmd])
        outcome = orch.step_once()
        x, x_dot, theta, theta_dot = orch.env.get_state()
        print(f"  x={x:+.3f} θ={np.degrees(theta):+.2f}° reward={outcome.reward:+.2f}")
        if outcome.episode is not None:
            episodes_done += 1
            print(f"[MANUAL] Episode {outcome.episode.episode} return = {outcome.episode.reward:.1f}")

    orch.pause()


def run_models(args: argparse.Namespace) -> None:
    store = ModelStore(args.models_dir)
    if args.delete:
        store.delete_model(args.delete, args.algorithm)
        print(f"Deleted {args.algorithm} model '{args.delete}'")
        return
    names = store.list_models(args.algorithm)
    if not names:
        print(f"No saved {args.algorithm} models in {args.models_dir}")
    for name in names:
        print(f"  {name}")


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def build_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="NeuroBalance: cart-pole balancing with PPO or Double DQN",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  neurobalance train                              # PPO, defaults
  neurobalance train --algorithm dqn --speed 50   # Double DQN, fast
  neurobalance train --save my-model --plot       # save weights + curve
  neurobalance eval my-model                      # greedy evaluation
  neurobalance manual                             # drive it yourself
  neurobalance models --delete my-model           # remove a saved model
""",
    )
    p.add_argument("mode", choices=["train", "eval", "manual", "models"])
    p.add_argument("model", nargs="?", default=None, help="model name (eval)")

    agent = p.add_argument_group("Agent")
    agent.add_argument("--algorithm", choices=sorted(TRAINERS), default=TRAIN_CONFIG["algorithm"])
    agent.add_argument("--lr", type=float, default=None, help="Learning rate (algorithm default if unset)")
    agent.add_argument("--epochs", type=int, default=PPO_CONFIG["epochs"], help="PPO epochs per episode")
    agent.add_argument("--batch-size", type=int, default=DQN_CONFIG["batch_size"], help="DQN batch size")
    agent.add_argument("--train-steps", type=int, default=DQN_CONFIG["train_steps"], help="DQN updates per episode")

    run = p.add_argument_group("Run")
    run.add_argument("--episodes", type=int, default=None, help="Episodes to run")
    run.add_argument("--max-steps", type=int, default=SESSION_CONFIG["max_steps"])
    run.add_argument("--speed", type=int, default=50, choices=SESSION_CONFIG["speeds"])
    run.add_argument("--fps", type=float, default=None, help="Tick rate (default: as fast as possible)")
    run.add_argument(
        "--realtime",
        dest="fps",
        action="store_const",
        const=SESSION_CONFIG["fps"],
        help=f"Tick at the nominal {SESSION_CONFIG['fps']} Hz display rate",
    )
    run.add_argument("--resume", type=str, default=None, help="Saved model to continue training")

    log = p.add_argument_group("Logging & Saving")
    log.add_argument("--log-interval", type=int, default=TRAIN_CONFIG["log_interval"])
    log.add_argument("--save", type=str, default=None, help="Save the trained model under this name")
    log.add_argument("--plot", action="store_true", help="Write a reward curve PNG")
    log.add_argument("--models-dir", type=str, default=PATHS["models_dir"])
    log.add_argument("--delete", type=str, default=None, help="Model to delete (models mode)")
    log.add_argument("-v", "--verbose", action="store_true")

    misc = p.add_argument_group("Misc")
    misc.add_argument("--seed", type=int, default=42)
    misc.add_argument("--cpu", action="store_true", help="Force CPU")

    args = p.parse_args(argv)
    if args.episodes is None:
        args.episodes = {
            "train": TRAIN_CONFIG["n_episodes"],
            "eval": TRAIN_CONFIG["eval_episodes"],
        }.get(args.mode, 3)
    if args.mode == "eval" and not args.model:
        p.error("eval needs a model name")
    return args


def main(argv=None) -> int:
    args = build_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    modes = {
        "train": run_train,
        "eval": run_eval,
        "manual": run_manual,
        "models": run_models,
    }
    try:
        modes[args.mode](args)
    except PersistenceError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
