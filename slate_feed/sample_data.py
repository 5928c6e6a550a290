"""Bootstrap posts used to populate an empty store for demos."""
from .models import Author, Post

SAMPLE_POSTS = [
    Post(
        title="Vintage Leather Jacket",
        description=(
            "A classic biker-style leather jacket from the 80s. Well-preserved with a "
            "beautiful patina. Minor wear on the cuffs, but otherwise in excellent "
            "condition. Size is Men's Medium."
        ),
        image_urls=[
            "https://picsum.photos/seed/jacket/600/800",
            "https://picsum.photos/seed/jacket2/600/800",
            "https://picsum.photos/seed/jacket3/600/800",
        ],
        user=Author(
            name="Alex Johnson",
            avatar_url="https://picsum.photos/seed/alex/100/100",
            phone_number="+15551234567",
        ),
        category="sale",
        price="$75",
        location="Downtown",
        tags=["fashion", "vintage", "80s", "leather"],
    ),
    Post(
        title="Community Farmers Market",
        description=(
            "Join us every Saturday for fresh, locally-grown produce, handmade crafts, "
            "and live music. A perfect weekend outing for the whole family. Free entry!"
        ),
        image_urls=[
            "https://picsum.photos/seed/market/600/800",
            "https://picsum.photos/seed/market2/600/800",
        ],
        user=Author(
            name="Maria Garcia",
            avatar_url="https://picsum.photos/seed/maria/100/100",
            phone_number="+15552345678",
        ),
        category="event",
        event_date="Sat, Nov 2",
        location="Central Park",
        tags=["community", "food", "family-friendly", "outdoors"],
    ),
    Post(
        title="Weekend Dog Walking",
        description=(
            "Experienced and reliable dog walker available for weekend walks. I love all "
            "breeds and sizes. Your furry friend will be in safe hands for a fun-filled "
            "hour of exercise and play."
        ),
        image_urls=[
            "https://picsum.photos/seed/dogs/600/800",
            "https://picsum.photos/seed/dogwalk/600/800",
            "https://picsum.photos/seed/dogpark/600/800",
        ],
        user=Author(
            name="Chen Wei",
            avatar_url="https://picsum.photos/seed/chen/100/100",
            phone_number="+15553456789",
        ),
        category="service",
        location="Neighborhood-wide",
        tags=["pets", "services", "animals"],
    ),
    Post(
        title="Senior Frontend Engineer",
        description=(
            "Join our dynamic team to build next-gen web applications. Proficient in "
            "React, TypeScript, and modern CSS. 5+ years of experience required. "
            "Competitive salary and benefits."
        ),
        image_urls=[
            "https://picsum.photos/seed/devjob/600/800",
            "https://picsum.photos/seed/office/600/800",
        ],
        user=Author(
            name="Innovate Tech Inc.",
            avatar_url="https://picsum.photos/seed/innovate/100/100",
            phone_number="+15553001001",
        ),
        category="job",
        price="$120,000 - $150,000/year",
        location="Remote / Downtown Office",
        tags=["tech", "engineering", "react", "remote"],
    ),
    Post(
        title="MacBook Pro M3 - Like New",
        description=(
            "Selling my MacBook Pro M3 16-inch with 32GB RAM and 1TB SSD. Barely used, "
            "still under warranty. Perfect for developers and creators. Includes "
            "original charger and box."
        ),
        image_urls=[
            "https://picsum.photos/seed/macbook/600/800",
            "https://picsum.photos/seed/laptop/600/800",
        ],
        user=Author(
            name="Sarah Chen",
            avatar_url="https://picsum.photos/seed/sarah/100/100",
            phone_number="+15554567890",
        ),
        category="sale",
        price="$2,200",
        location="Tech District",
        tags=["tech", "apple", "laptop", "development"],
    ),
    Post(
        title="Halloween Party Tonight!",
        description=(
            "Join us for a spooky Halloween celebration! Costume contest with prizes, "
            "pumpkin carving, and themed cocktails. Don't miss the fun!"
        ),
        image_urls=[
            "https://picsum.photos/seed/halloween/600/800",
            "https://picsum.photos/seed/party/600/800",
        ],
        user=Author(
            name="Party Planners Co.",
            avatar_url="https://picsum.photos/seed/party-planners/100/100",
            phone_number="+15556789012",
        ),
        category="event",
        event_date="Thu, Oct 31",
        location="Downtown Community Center",
        tags=["halloween", "party", "costume", "community"],
    ),
]
