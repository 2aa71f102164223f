"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the settlement backend.
"""
import os


class Config:
    """Centralized configuration from environment variables."""
    
    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
    
    # DynamoDB Tables
    TASKS_TABLE = os.environ.get('TASKS_TABLE', '')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', '')
    WALLETS_TABLE = os.environ.get('WALLETS_TABLE', '')
    
    # Admin ingestion
    ADMIN_SECRET = os.environ.get('ADMIN_SECRET', '')
    
    # Task lease (per-task exclusive lock held during settlement)
    LOCK_LEASE_SECONDS = int(os.environ.get('LOCK_LEASE_SECONDS', '30'))
    LOCK_POLL_INTERVAL_SECONDS = float(os.environ.get('LOCK_POLL_INTERVAL_SECONDS', '0.05'))
    LOCK_WAIT_TIMEOUT_SECONDS = float(os.environ.get('LOCK_WAIT_TIMEOUT_SECONDS', '0'))  # 0 waits indefinitely


config = Config()
