"""Readers for the cgroups v1 cpu, cpuacct, memory and blkio subsystems."""