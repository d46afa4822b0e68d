"""
Runtime configuration for the vocabulary review bot.

Secrets and paths come from the environment (a local .env file is honoured),
tuning knobs live in the dicts below.
"""
import os

from dotenv import load_dotenv

load_dotenv()

TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')

LANGUAGES = [
    lang.strip().lower()
    for lang in os.getenv('LANGUAGES', 'spanish,german,french,italian,russian').split(',')
    if lang.strip()
]

VOCABULARY_DIR = os.getenv('VOCABULARY_DIR', '.')

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

ONE_DAY_MS = 24 * 60 * 60 * 1000

# Database Configuration
DATABASE = {
    'path': os.getenv('DATABASE_PATH', 'vocab_bot.db'),
    'pool_size': 20,  # Number of concurrent database connections
    'cache_size': 10000,  # SQLite cache size
}

# Rate Limiting Configuration
RATE_LIMIT = {
    'requests_per_minute': 30,  # Button taps count as requests
    'window': 60,
    'burst_capacity': 40,
    'cleanup_interval': 300,  # Cleanup old buckets every 5 minutes
}

# Scheduling Configuration
SCHEDULING = {
    'initial_interval': ONE_DAY_MS,
    'initial_ease_factor': 2.5,
    'min_ease_factor': 1.3,
    'ease_increment': 0.1,
    'ease_decrement': 0.2,
    'lapse_multiplier': 1.3,
}

# Review Configuration
REVIEW = {
    'option_count': 4,  # 1 correct answer + 3 distractors
    'min_distractors': 1,
    'distractor_pool_size': 20,  # Candidates read before sampling
    'progress_marks': 4,
}

# Telegram Bot Configuration
TELEGRAM = {
    'concurrent_updates': True,  # Process updates concurrently
    'pool_timeout': 60.0,  # Connection pool timeout
    'connection_pool_size': 20,  # HTTP connection pool size
}

# Performance Tuning
PERFORMANCE = {
    'use_uvloop': os.getenv('USE_UVLOOP', '1') == '1',
}
