"""Built-in seed data: the reading list kept before this app existed.

Records use the old loose shape: `tags` instead of `keywords`, `comment`
instead of `review`, string ratings with "N/A"/"X" placeholders and old
status spellings.
"""

LEGACY_BOOKS = [
    {
        "title": "三體",
        "type": "實體書",
        "tags": ["科幻", "宇宙", "科幻"],
        "rating": "5",
        "comment": "黑暗森林法則令人背脊發涼。",
    },
    {
        "title": "小王子",
        "type": "外文書",
        "tags": ["童話", "哲思"],
        "rating": 4.5,
        "comment": "N/A",
    },
    {
        "title": "人間失格",
        "tags": ["日本文學"],
        "rating": "N/A",
        "status": "待看",
    },
    {
        "title": "進擊的巨人",
        "type": "漫畫",
        "tags": ["熱血", "反轉"],
        "rating": "X",
        "comment": "後期節奏太趕。",
        "status": "棄書",
    },
    {
        "title": "百年孤寂",
        "type": "外文書",
        "rating": "3.5",
        "status": "閱讀中",
    },
    {
        "title": "解憂雜貨店",
        "tags": ["溫馨", "療癒"],
        "rating": None,
        "comment": "適合睡前讀。",
    },
]
