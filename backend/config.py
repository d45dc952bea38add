import json
from decimal import Decimal
from typing import Dict, Any
from pathlib import Path

class Config:
    """Business rules loaded from config.json (plan, tax, referral payouts)"""

    def __init__(self, config_file: str = "config.json"):
        self.config_file = config_file
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from JSON file"""
        config_path = Path(__file__).parent / self.config_file

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)"""
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_plan_name(self) -> str:
        return str(self.get("plan.name", "Premium Yearly"))

    def get_plan_duration_years(self) -> int:
        return int(self.get("plan.duration_years", 1))

    def get_gst_rate(self) -> Decimal:
        """GST rate as an exact decimal (0.05 for 5%)"""
        return Decimal(str(self.get("tax.gst_rate", "0.05")))

    def get_commission_amount(self) -> Decimal:
        """Fixed commission credited to a referrer per paid subscription"""
        return Decimal(str(self.get("referral.commission_amount", 50)))

    def get_settlement_max_attempts(self) -> int:
        return int(self.get("settlement.max_attempts", 5))

    def get_points_completion_threshold(self) -> Decimal:
        return Decimal(str(self.get("points.completion_threshold", "0.95")))

    def get_invoice_prefix(self) -> str:
        return str(self.get("invoice.prefix", "INV"))


# Global configuration instance
config = Config()
