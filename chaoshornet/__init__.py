"""
chaoshornet module

An integration test harness for multi-node ledger networks running in
containers. This module contains:
 - an engine client factory, container handles and a resolver for existing
   containers (execute directory).
 - role configuration builders turning entry node, peer, coordinator and
   chaos agent descriptions into container specs (roles.py).
 - network helpers for address discovery and virtual network lifecycle
   (network.py).
 - actions that create topologies and inject network faults (actions
   directory).
 - probes that gather read-only state about containers (probes directory).
 - common defaults, enums and exceptions (common directory).

The ledger node and the chaos tool are black boxes. The harness only drives
their command lines and reaches them by IP and port. Every engine call is
synchronous and bounded by a deadline (see helpers.run). Nothing is retried
automatically; scenarios that expect flakiness retry at their own level.

Things to consider when adding or modifying actions and/or probes:
1. Role builders must stay pure. Anything that needs the engine belongs in
   execute, actions or probes.
2. Every topology parameter a builder needs travels on its config value.
   Defaults live in chaoshornet.common as DEFAULT_CHAOS_* constants and are
   only used as field defaults.
"""
