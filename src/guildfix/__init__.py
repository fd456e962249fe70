"""guildfix - repair Palworld saves whose guild members lost their character."""

__version__ = "1.0.0"
