"""Sahayak: educator/learner chat, quizzes and doubt collection over a LAN WebSocket."""

__version__ = "0.1.0"
