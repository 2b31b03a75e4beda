"""Readers for the cgroups v2 cpu, memory and io controllers."""