import math

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PageLimitPagination(PageNumberPagination):
    """``?page=&limit=`` pagination, 10 per page by default, at most 100."""

    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        total = self.page.paginator.count
        limit = self.page.paginator.per_page
        return Response({
            'results': data,
            'pagination': {
                'total': total,
                'page': self.page.number,
                'limit': limit,
                'totalPages': math.ceil(total / limit) if limit else 0,
            },
        })
