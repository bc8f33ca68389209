"""Devices, device maps, replication, allocation, health settings and request validation."""