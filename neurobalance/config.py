"""
Configuration for NeuroBalance
==============================
"""

# Environment Configuration
ENV_CONFIG = {
    "gravity": 9.8,
    "mass_cart": 1.0,
    "mass_pole": 0.1,
    "half_pole_length": 0.5,       # actually half the pole's length
    "force_mag": 10.0,             # engine push per step
    "tau": 0.02,                   # seconds between state updates
    "x_threshold": 2.4,            # cart leaves the track beyond this
    "reset_noise": 0.05,           # uniform [-0.05, 0.05] on every state component
}

# Reward shaping (degrees, 90 = upright)
REWARD_CONFIG = {
    "safe_min_deg": 70.0,
    "safe_max_deg": 139.0,
    "failure_reward": -10.0,
    "edge_distance": 1.5,          # |x| beyond this costs edge_penalty
    "edge_penalty": 2.0,
}

# PPO Hyperparameters
PPO_CONFIG = {
    "hidden_sizes": (74, 74, 74),
    "learning_rate": 3e-4,         # lower LR is more stable for PPO
    "discount_factor": 0.99,       # gamma
    "gae_lambda": 0.95,
    "clip_ratio": 0.2,
    "epochs": 10,                  # full-batch passes per trajectory
}

# DQN Hyperparameters
DQN_CONFIG = {
    "hidden_sizes": (64, 64, 64),
    "learning_rate": 1e-4,
    "discount_factor": 0.99,
    "epsilon": 1.0,                # initial exploration rate
    "epsilon_min": 0.01,
    "epsilon_decay": 0.995,        # multiplicative, once per training call
    "batch_size": 64,
    "replay_size": 50_000,
    "train_steps": 5,              # gradient steps per training call
    "target_update_freq": 10,      # training calls between hard target syncs
}

# Episode orchestration
SESSION_CONFIG = {
    "max_steps": 500,              # step ceiling per episode
    "fps": 60,                     # nominal tick rate
    "speeds": (1, 5, 10, 50),      # allowed physics steps per tick
    "history_size": 1000,          # rolling (episode, reward) history
    "recent_window": 10,           # episodes in the rolling average
}

# CLI Training Configuration
TRAIN_CONFIG = {
    "algorithm": "ppo",
    "n_episodes": 300,
    "log_interval": 10,            # print stats every N episodes
    "eval_episodes": 10,
}

# Paths
PATHS = {
    "models_dir": "./models",
    "plots_dir": "./plots",
}
