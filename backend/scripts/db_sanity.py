from backend.db import CONTENT_TABLE, REFRESH_LOG_TABLE, get_client, get_columns

REQUIRED_COLUMNS = {
    CONTENT_TABLE: {
        "topic",
        "age_range",
        "url",
        "title",
        "content_summary",
        "source_domain",
        "publication_date",
        "image_url",
        "reading_time",
        "tags",
        "author",
        "quality_score",
        "refresh_cycle",
        "is_active",
    },
    REFRESH_LOG_TABLE: {
        "topic",
        "age_range",
        "articles_added",
        "articles_removed",
        "status",
        "error_message",
        "refresh_cycle",
        "refresh_date",
    },
}


def missing_columns(sb) -> dict[str, list[str]]:
    missing = {}
    for table, required in REQUIRED_COLUMNS.items():
        names = get_columns(sb, table)
        gap = sorted(required - names)
        if gap:
            missing[table] = gap
    return missing


def main(sb=None) -> None:
    sb = sb or get_client()

    missing = missing_columns(sb)
    assert not missing, f"missing columns: {missing}"

    r = (
        sb.table(REFRESH_LOG_TABLE)
        .select("topic,age_range,status,refresh_cycle,refresh_date")
        .order("refresh_date", desc=True)
        .limit(3)
        .execute()
    )
    print("content_refresh_log latest:", r.data)

    s = sb.table(CONTENT_TABLE).select("id,topic,url").limit(1).execute()
    print("topic_content ok:", s.data)


if __name__ == "__main__":
    main()
