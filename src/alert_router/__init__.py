"""Alert Router - route alerts to email, SMS and chat by subscription."""

__version__ = "0.1.0"
