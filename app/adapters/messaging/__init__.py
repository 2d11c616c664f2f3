"""Messaging client adapters.

The WhatsApp Web automation engine (protocol, QR handshake, headless
browser) is external; these adapters expose it to the service layer behind
``AbstractMessagingClient``.
"""
