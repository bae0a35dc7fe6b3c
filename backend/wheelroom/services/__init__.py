"""Wheel room services: physics, timers and external collaborators.

The wheel engine and spin timer are pure(ish) domain logic; the backend
client and chat notifier are the only modules that talk to the network.
Rooms and socket handlers import from here, keeping transport concerns
separated from the wheel mechanics.
"""
