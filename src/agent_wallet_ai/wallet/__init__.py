"""Blockchain wallet system for Agent Wallet AI.

Provides a self-custody EVM wallet on Base / Base Sepolia, a saved-wallet
store, and the Web3 plumbing the chat tools call into.  Fund-moving
operations only run after a human confirms them in chat.
"""
