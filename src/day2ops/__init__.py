"""
day2ops - day-2 operations for managed clusters.

Checksum-gated remote command execution through a shared plan store, and
the controllers built on it: etcd snapshot creation, whole-cluster etcd
restore and the per-cluster snapshot inventory.

Packages
--------
core          errors, logging, settings, hashing, ORM
plan          instructions, codecs, plan stores, planner
models        task and management-plane resources
clients       client protocols and in-memory implementations
controllers   snapshot, restore and inventory reconcilers
runtime       work queue, controller loop, manager
webhooks      admission checks
cli           Typer CLI
"""

__version__ = "0.1.0"
