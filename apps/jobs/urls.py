from django.urls import path
from .views import (
    JobListCreateView, MyPostingsView, MyBidsView, AssignedJobsView, JobDetailView,
    JobPublishView, JobBidsView, BidDetailView, BidWithdrawView, BidAcceptView,
    BidRejectView, JobStartView, JobCompleteView
)

urlpatterns = [
    path('', JobListCreateView.as_view(), name='job_list'),
    path('my-postings/', MyPostingsView.as_view(), name='job_my_postings'),
    path('my-bids/', MyBidsView.as_view(), name='job_my_bids'),
    path('assigned/', AssignedJobsView.as_view(), name='job_assigned'),
    path('<int:pk>/', JobDetailView.as_view(), name='job_detail'),
    path('<int:pk>/publish/', JobPublishView.as_view(), name='job_publish'),

    # Bids
    path('<int:pk>/bids/', JobBidsView.as_view(), name='job_bids'),
    path('<int:pk>/bids/<int:bid_id>/', BidDetailView.as_view(), name='bid_detail'),
    path('<int:pk>/bids/<int:bid_id>/withdraw/', BidWithdrawView.as_view(), name='bid_withdraw'),
    path('<int:pk>/bids/<int:bid_id>/accept/', BidAcceptView.as_view(), name='bid_accept'),
    path('<int:pk>/bids/<int:bid_id>/reject/', BidRejectView.as_view(), name='bid_reject'),

    # Work
    path('<int:pk>/start/', JobStartView.as_view(), name='job_start'),
    path('<int:pk>/complete/', JobCompleteView.as_view(), name='job_complete'),
]
