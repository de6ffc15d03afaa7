"""Chatroom client package."""
