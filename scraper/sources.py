"""Catalog of known calendar sources and their sample events."""
from dataclasses import replace
from datetime import timedelta
from typing import Dict, List, NamedTuple, Optional, Tuple

from processor.models import CalendarSource, CandidateEvent, DateWindow, SourceDescriptor

SOURCE_CATALOG: Dict[CalendarSource, SourceDescriptor] = {
    CalendarSource.WAYLAND_TOWN: SourceDescriptor(
        id=CalendarSource.WAYLAND_TOWN,
        display_name="Town of Wayland",
        url="https://www.wayland.ma.us/calendar",
        base_url="https://www.wayland.ma.us",
        description="Official Town of Wayland calendar with municipal meetings and events",
    ),
    CalendarSource.TCAN_EVENTS: SourceDescriptor(
        id=CalendarSource.TCAN_EVENTS,
        display_name="TCAN Events",
        url="https://tcan.org/events/",
        base_url="https://tcan.org",
        description="The Center for Arts in Natick - concerts, performances, and cultural events",
    ),
    CalendarSource.PATCH_COMMUNITY: SourceDescriptor(
        id=CalendarSource.PATCH_COMMUNITY,
        display_name="Patch Community",
        url="https://patch.com/massachusetts/wayland/calendar",
        base_url="https://patch.com",
        description="Community events and local happenings from Patch",
    ),
    CalendarSource.WAYLAND_HIGH_SCHOOL: SourceDescriptor(
        id=CalendarSource.WAYLAND_HIGH_SCHOOL,
        display_name="Wayland High School",
        url="https://whs.wayland.k12.ma.us/calendar",
        base_url="https://whs.wayland.k12.ma.us",
        description="Wayland High School academic and athletic events",
    ),
    CalendarSource.WAYLAND_WCPA: SourceDescriptor(
        id=CalendarSource.WAYLAND_WCPA,
        display_name="Wayland WCPA",
        url="https://waylandwcpa.org/events",
        base_url="https://waylandwcpa.org",
        description="Wayland Children and Parents Association family events",
    ),
    CalendarSource.TOWN_PLANNER: SourceDescriptor(
        id=CalendarSource.TOWN_PLANNER,
        display_name="Town Planner",
        url="https://www.townplanner.com/wayland/ma/",
        base_url="https://www.townplanner.com",
        description="Comprehensive local event listings for Wayland area",
    ),
    CalendarSource.ARTS_WAYLAND: SourceDescriptor(
        id=CalendarSource.ARTS_WAYLAND,
        display_name="Arts Wayland",
        url="https://artswayland.com/pages/calendar",
        base_url="https://artswayland.com",
        description="Arts exhibitions, workshops, and cultural programming",
    ),
    CalendarSource.WAYLAND_HIGH_ATHLETICS: SourceDescriptor(
        id=CalendarSource.WAYLAND_HIGH_ATHLETICS,
        display_name="Wayland High Athletics",
        url="https://arbiterlive.com/School/Calendar/24991",
        base_url="https://arbiterlive.com",
        description="Wayland High School sports and athletics calendar",
    ),
    CalendarSource.WAYLAND_MIDDLE_ATHLETICS: SourceDescriptor(
        id=CalendarSource.WAYLAND_MIDDLE_ATHLETICS,
        display_name="Wayland Middle Athletics",
        url="https://arbiterlive.com/School/Calendar/24992",
        base_url="https://arbiterlive.com",
        description="Wayland Middle School sports and athletics calendar",
    ),
    CalendarSource.WAYLAND_LIBRARY: SourceDescriptor(
        id=CalendarSource.WAYLAND_LIBRARY,
        display_name="Wayland Library",
        url="https://waylandlibrary.org/events/",
        base_url="https://waylandlibrary.org",
        description="Wayland Free Public Library programs and events",
    ),
}


def descriptor_for(source: CalendarSource, now: Optional[str] = None) -> SourceDescriptor:
    """Fresh copy of a source's catalog descriptor, stamped with now."""
    return replace(SOURCE_CATALOG[source], created_at=now, updated_at=now)


def all_descriptors(now: Optional[str] = None) -> List[SourceDescriptor]:
    return [descriptor_for(source, now) for source in CalendarSource]


class SampleEvent(NamedTuple):
    """Representative event shown when a source yields nothing live."""
    title: str
    description: str
    day_offset: int
    category: str
    department: str
    location: str
    organizer_name: str
    tags: Tuple[str, ...]
    start_time: Optional[str] = None
    url: Optional[str] = None


TOWN_BUILDING = "Wayland Town Building"

SAMPLE_EVENTS: Dict[CalendarSource, List[SampleEvent]] = {
    CalendarSource.WAYLAND_TOWN: [
        SampleEvent(
            "Board of Selectmen Meeting", "Regular meeting of the Board of Selectmen",
            5, "meeting", "selectmen", f"{TOWN_BUILDING} - Selectmen's Room",
            "Town of Wayland", ("government", "municipal", "meeting"), "19:00",
        ),
        SampleEvent(
            "Planning Board Public Hearing", "Public hearing on proposed zoning amendments",
            12, "hearing", "planning", f"{TOWN_BUILDING} - Planning Board Room",
            "Wayland Planning Board", ("government", "planning", "public-hearing"), "19:30",
        ),
        SampleEvent(
            "Town Finance Committee Meeting", "Monthly Finance Committee meeting",
            19, "meeting", "finance", f"{TOWN_BUILDING} - Conference Room",
            "Wayland Finance Committee", ("government", "finance", "budget"), "19:00",
        ),
    ],
    CalendarSource.TCAN_EVENTS: [
        SampleEvent(
            "Live Music at TCAN", "Evening concert on the TCAN main stage",
            6, "performance", "arts", "TCAN Main Stage",
            "The Center for Arts in Natick", ("arts", "music", "performance"), "20:00",
        ),
        SampleEvent(
            "Comedy Night", "Stand-up comedy showcase",
            20, "performance", "arts", "TCAN Main Stage",
            "The Center for Arts in Natick", ("arts", "comedy", "performance"), "19:30",
        ),
    ],
    CalendarSource.PATCH_COMMUNITY: [
        SampleEvent(
            "Wayland Farmers Market", "Local farms and vendors at the Town Center",
            3, "market", "community", "Wayland Town Center",
            "Wayland Farmers Market", ("community", "market"), "14:00",
        ),
        SampleEvent(
            "Community Yard Sale", "Neighborhood yard sale across Wayland",
            17, "market", "community", "Wayland",
            "Patch Community", ("community", "market"), None,
        ),
    ],
    CalendarSource.WAYLAND_HIGH_SCHOOL: [
        SampleEvent(
            "Open House", "Wayland High School open house for families",
            8, "family", "school", "Wayland High School",
            "Wayland High School", ("education", "school"), "18:30",
        ),
        SampleEvent(
            "Fall Concert", "Wayland High School music department fall concert",
            22, "performance", "school", "Wayland High School Auditorium",
            "Wayland High School", ("education", "music", "performance"), "19:00",
        ),
    ],
    CalendarSource.WAYLAND_WCPA: [
        SampleEvent(
            "Family Fun Day", "Games and activities for Wayland families",
            9, "family", "community", "Wayland Town Beach",
            "Wayland WCPA", ("family", "children", "community"), "10:00",
        ),
        SampleEvent(
            "Parent Coffee Morning", "Informal meet-up for Wayland parents",
            16, "family", "community", "Wayland Community Center",
            "Wayland WCPA", ("family", "parents"), "09:30",
        ),
    ],
    CalendarSource.TOWN_PLANNER: [
        SampleEvent(
            "Wayland Community Cleanup", "Volunteer cleanup of town parks and trails",
            10, "community", "community", "Wayland Town Center",
            "Town Planner", ("community", "volunteer"), "09:00",
        ),
        SampleEvent(
            "Wayland Holiday Festival", "Seasonal festival for the whole community",
            30, "holiday", "community", "Wayland Town Center",
            "Town Planner", ("community", "holiday"), None,
        ),
    ],
    CalendarSource.ARTS_WAYLAND: [
        SampleEvent(
            "GALLERY SCHEDULE", "Monthly art exhibition at The Arts Wayland Gallery",
            7, "arts", "arts", "Arts Wayland Gallery",
            "Arts Wayland", ("arts", "gallery", "exhibition"), None,
            "https://artswayland.com/pages/gallery",
        ),
        SampleEvent(
            "Members Art Exhibit",
            "At The Arts Wayland Gallery in Town Center: 35 Andrew Ave, Wayland, MA 01778",
            14, "arts", "arts", "The Arts Wayland Gallery in Town Center",
            "Arts Wayland", ("arts", "exhibition", "members"), None,
            "https://artswayland.com/pages/exhibitions",
        ),
    ],
    CalendarSource.WAYLAND_HIGH_ATHLETICS: [
        SampleEvent(
            "Varsity Soccer vs. Weston", "Varsity soccer home game",
            4, "soccer", "athletics", "Wayland High School Field",
            "Wayland High Athletics", ("athletics", "sports", "soccer"), "16:00",
        ),
        SampleEvent(
            "Varsity Football vs. Lincoln-Sudbury", "Varsity football home game",
            11, "football", "athletics", "Wayland High School Stadium",
            "Wayland High Athletics", ("athletics", "sports", "football"), "19:00",
        ),
    ],
    CalendarSource.WAYLAND_MIDDLE_ATHLETICS: [
        SampleEvent(
            "Middle School Cross Country Meet", "Home cross country meet",
            6, "track", "athletics", "Wayland Middle School",
            "Wayland Middle Athletics", ("athletics", "sports", "track"), "15:30",
        ),
        SampleEvent(
            "Middle School Soccer vs. Sudbury", "Middle school soccer home game",
            13, "soccer", "athletics", "Wayland Middle School Field",
            "Wayland Middle Athletics", ("athletics", "sports", "soccer"), "15:30",
        ),
    ],
    CalendarSource.WAYLAND_LIBRARY: [
        SampleEvent(
            "Preschool Story Time", "Stories and songs for children ages 2-5",
            2, "children", "library", "Wayland Free Public Library - Children's Room",
            "Wayland Free Public Library", ("library", "children"), "10:30",
        ),
        SampleEvent(
            "Adult Book Club", "Monthly book discussion group",
            15, "literature", "library", "Wayland Free Public Library",
            "Wayland Free Public Library", ("library", "books", "literature"), "19:00",
        ),
    ],
}


def sample_events_for(source: CalendarSource, window: DateWindow) -> List[CandidateEvent]:
    """
    Build the fixed sample set for a source, placed inside the window.

    Each sample lands on window.start + its day offset, clamped to the
    window end so every sample stays inside the requested range.

    Args:
        source: Source to build samples for
        window: Requested date window

    Returns:
        List of CandidateEvent objects
    """
    events = []
    for sample in SAMPLE_EVENTS[source]:
        day = min(window.start + timedelta(days=sample.day_offset), window.end)
        events.append(CandidateEvent(
            title=sample.title,
            description=sample.description,
            start_date=day,
            start_time=sample.start_time,
            is_all_day=sample.start_time is None,
            location=sample.location,
            venue=sample.location,
            category=sample.category,
            department=sample.department,
            calendar_source=source,
            url=sample.url,
            organizer_name=sample.organizer_name,
            tags=list(sample.tags),
        ))
    return events
