"""Delay- and loss-based congestion control components."""