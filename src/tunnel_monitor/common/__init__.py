"""Common utilities shared by the tunnel monitor components."""
