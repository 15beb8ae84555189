"""spp-lobby: ephemeral game server lobby."""
