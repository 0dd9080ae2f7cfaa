def page_args(args, default_limit=20, max_limit=100):
    try:
        page = max(int(args.get("page", 1)), 1)
        limit = min(max(int(args.get("limit", default_limit)), 1), max_limit)
    except (TypeError, ValueError):
        page, limit = 1, default_limit
    return page, limit


def paginate_query(query, page, limit):
    page = max(int(page) if page else 1, 1)
    limit = max(int(limit) if limit else 10, 1)
    items = query.offset((page-1)*limit).limit(limit).all()
    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit
    return items, {"total": total, "page": page, "limit": limit, "total_pages": total_pages}
