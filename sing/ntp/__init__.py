"""SNTP message codec, a one-shot query and a clock-correcting service."""