"""Static demo catalog mixed into trending results and used offline."""

from __future__ import annotations

import random

from .models import Track

DEMO_TRACKS: tuple[Track, ...] = (
    Track(
        id="spotify:demo1",
        title="Blinding Lights",
        artist="The Weeknd",
        album="After Hours",
        duration_seconds=200,
        source="spotify",
        playable_url="https://open.spotify.com/track/0VjIjW4GlUZAMYd2vXMi3b",
        preview_url="https://p.scdn.co/mp3-preview/9ecf5ed35d2d6f9e6a4c5b8e3c9f8d5e7f2b1c4d",
        cover_url="https://i.scdn.co/image/ab67616d0000b273c06f0e8b3e5b4c8f7e2b1c4d",
        popularity=0.95,
        genres=("Pop", "Synth-pop"),
        release_date="2019-11-29",
        license="Spotify",
    ),
    Track(
        id="spotify:demo2",
        title="Shape of You",
        artist="Ed Sheeran",
        album="÷ (Divide)",
        duration_seconds=233,
        source="spotify",
        playable_url="https://open.spotify.com/track/7qiZfU4dY1lWllzX7mPBI3",
        preview_url="https://p.scdn.co/mp3-preview/c5e9b8e3c9f8d5e7f2b1c4d9ecf5ed35d2d6f9e6",
        cover_url="https://i.scdn.co/image/ab67616d0000b273ba5db46f4b838ef6027e6f96",
        popularity=0.92,
        genres=("Pop", "Folk"),
        release_date="2017-01-06",
        license="Spotify",
    ),
    Track(
        id="youtube:fJ9rUzIMcZQ",
        title="Bohemian Rhapsody",
        artist="Queen",
        album="A Night at the Opera",
        duration_seconds=355,
        source="youtube",
        playable_url="https://www.youtube.com/watch?v=fJ9rUzIMcZQ",
        preview_url="https://www.youtube.com/watch?v=fJ9rUzIMcZQ",
        cover_url="https://i.ytimg.com/vi/fJ9rUzIMcZQ/maxresdefault.jpg",
        popularity=0.98,
        genres=("Rock", "Opera"),
        release_date="1975-10-31",
        license="YouTube",
    ),
    Track(
        id="jamendo:demo1",
        title="Sunset Dreams",
        artist="Electronic Vibes",
        album="Chill Waves",
        duration_seconds=215,
        source="jamendo",
        playable_url="https://prod-1.storage.jamendo.com/download/track/1234567/mp32/",
        preview_url="https://prod-1.storage.jamendo.com/download/track/1234567/mp32/",
        cover_url="https://usercontent.jamendo.com/covers/1234567/cover.jpg",
        popularity=0.8,
        genres=("Electronic", "Chill"),
        release_date="2024-01-15",
        license="Creative Commons",
    ),
    Track(
        id="demo:1",
        title="City Lights",
        artist="Urban Beats",
        album="Night Life",
        duration_seconds=198,
        source="demo",
        cover_url="https://picsum.photos/400/400?random=2",
        popularity=0.9,
        genres=("Hip Hop", "Urban"),
        release_date="2024-02-01",
        license="Demo",
    ),
    Track(
        id="demo:2",
        title="Ocean Waves",
        artist="Nature Sounds",
        album="Peaceful Moments",
        duration_seconds=254,
        source="demo",
        cover_url="https://picsum.photos/400/400?random=3",
        popularity=0.7,
        genres=("Ambient", "Nature"),
        release_date="2024-01-20",
        license="Demo",
    ),
    Track(
        id="demo:3",
        title="Guitar Hero",
        artist="Rock Masters",
        album="Greatest Hits",
        duration_seconds=267,
        source="demo",
        cover_url="https://picsum.photos/400/400?random=4",
        popularity=0.85,
        genres=("Rock", "Classic"),
        release_date="2024-01-10",
        license="Demo",
    ),
    Track(
        id="demo:4",
        title="Jazz Night",
        artist="Smooth Jazz Collective",
        album="Late Night Sessions",
        duration_seconds=289,
        source="demo",
        cover_url="https://picsum.photos/400/400?random=5",
        popularity=0.75,
        genres=("Jazz", "Smooth"),
        release_date="2024-01-25",
        license="Demo",
    ),
    Track(
        id="spotify:demo3",
        title="Someone Like You",
        artist="Adele",
        album="21",
        duration_seconds=285,
        source="spotify",
        playable_url="https://open.spotify.com/track/1zwMYTA5nlNjZxYrvBB2pV",
        preview_url="https://p.scdn.co/mp3-preview/f8d5e7f2b1c4d9ecf5ed35d2d6f9e6a4c5b8e3c9",
        cover_url="https://i.scdn.co/image/ab67616d0000b273372eb75c4b8f8b5e7f2b1c4d",
        popularity=0.88,
        genres=("Pop", "Soul"),
        release_date="2011-01-24",
        license="Spotify",
    ),
    Track(
        id="youtube:kJQP7kiw5Fk",
        title="Despacito",
        artist="Luis Fonsi ft. Daddy Yankee",
        album="Vida",
        duration_seconds=229,
        source="youtube",
        playable_url="https://www.youtube.com/watch?v=kJQP7kiw5Fk",
        preview_url="https://www.youtube.com/watch?v=kJQP7kiw5Fk",
        cover_url="https://i.ytimg.com/vi/kJQP7kiw5Fk/maxresdefault.jpg",
        popularity=0.96,
        genres=("Latin", "Reggaeton"),
        release_date="2017-01-12",
        license="YouTube",
    ),
)


def demo_tracks(limit: int = 20, *, rng: random.Random | None = None) -> list[Track]:
    """Return up to `limit` demo tracks in shuffled order."""
    tracks = list(DEMO_TRACKS)
    (rng or random.Random()).shuffle(tracks)
    return tracks[: max(0, limit)]
