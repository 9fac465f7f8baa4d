"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY

# Daily word metrics
try:
    daily_words_created_counter = Counter(
        'wordle_daily_words_created_total',
        'Total number of daily words generated'
    )
except ValueError:
    daily_words_created_counter = REGISTRY._names_to_collectors.get('wordle_daily_words_created_total')

# Game metrics
try:
    games_submitted_counter = Counter(
        'wordle_games_submitted_total',
        'Total number of game submissions',
        ['outcome']
    )
except ValueError:
    games_submitted_counter = REGISTRY._names_to_collectors.get('wordle_games_submitted_total')

# Notification metrics
try:
    notifications_created_counter = Counter(
        'wordle_notifications_created_total',
        'Total number of pending notifications created'
    )
except ValueError:
    notifications_created_counter = REGISTRY._names_to_collectors.get('wordle_notifications_created_total')

try:
    notifications_served_counter = Counter(
        'wordle_notifications_served_total',
        'Total number of destination payloads served to the delivery agent',
        ['kind']
    )
except ValueError:
    notifications_served_counter = REGISTRY._names_to_collectors.get('wordle_notifications_served_total')

try:
    notifications_processed_counter = Counter(
        'wordle_notifications_processed_total',
        'Total number of notifications marked as processed'
    )
except ValueError:
    notifications_processed_counter = REGISTRY._names_to_collectors.get('wordle_notifications_processed_total')

try:
    image_composition_failures_counter = Counter(
        'wordle_image_composition_failures_total',
        'Total number of failed side-by-side image compositions'
    )
except ValueError:
    image_composition_failures_counter = REGISTRY._names_to_collectors.get('wordle_image_composition_failures_total')

# Cleanup metrics
try:
    cleanup_runs_counter = Counter(
        'wordle_cleanup_runs_total',
        'Total number of cleanup job runs',
        ['status']
    )
except ValueError:
    cleanup_runs_counter = REGISTRY._names_to_collectors.get('wordle_cleanup_runs_total')

try:
    cleanup_notifications_removed_counter = Counter(
        'wordle_cleanup_notifications_removed_total',
        'Total number of pending notifications removed by cleanup job'
    )
except ValueError:
    cleanup_notifications_removed_counter = REGISTRY._names_to_collectors.get('wordle_cleanup_notifications_removed_total')

# Auth metrics
try:
    login_attempts_counter = Counter(
        'wordle_login_attempts_total',
        'Total number of login attempts',
        ['status', 'method']
    )
except ValueError:
    login_attempts_counter = REGISTRY._names_to_collectors.get('wordle_login_attempts_total')
