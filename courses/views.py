"""Views for courses and drip release."""

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Course, CourseEnrollment, CourseSection
from .serializers import (
    CourseEnrollmentSerializer,
    CourseSectionSerializer,
    CourseSerializer,
    EnrollSerializer,
    UnlockScheduleEntrySerializer,
)
from . import services


class CourseListCreateView(APIView):
    """
    List all courses or create a new one.

    GET /api/courses/ - List all courses
    POST /api/courses/ - Create a new course
    """

    def get(self, request):
        courses = Course.objects.all()
        serializer = CourseSerializer(courses, many=True)
        return Response(serializer.data)

    def post(self, request):
        serializer = CourseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        course = serializer.save()
        return Response(CourseSerializer(course).data, status=status.HTTP_201_CREATED)


class CourseDetailView(APIView):
    """
    Retrieve or update a course.

    GET /api/courses/{id}/ - Retrieve course
    PATCH /api/courses/{id}/ - Update course and drip settings
    """

    def get(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        return Response(CourseSerializer(course).data)

    def patch(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        serializer = CourseSerializer(course, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        course = serializer.save()
        return Response(CourseSerializer(course).data)


class CourseSectionListCreateView(APIView):
    """
    List or add the sections of a course.

    GET /api/courses/{id}/sections/ - Sections in release order
    POST /api/courses/{id}/sections/ - Add a section
    """

    def get(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        sections = CourseSection.objects.for_course(course).in_release_order()
        return Response(CourseSectionSerializer(sections, many=True).data)

    def post(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        serializer = CourseSectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        section = serializer.save(course=course)
        return Response(CourseSectionSerializer(section).data, status=status.HTTP_201_CREATED)


class UnlockScheduleView(APIView):
    """
    Preview the unlock schedule of a course.

    GET /api/courses/{id}/unlock-schedule/
    """

    def get(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        schedule = services.get_unlock_schedule(course)
        return Response(UnlockScheduleEntrySerializer(schedule, many=True).data)


class ApplyDripView(APIView):
    """
    Write the unlock schedule back to the sections.

    POST /api/courses/{id}/apply-drip/
    """

    def post(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        schedule = services.apply_drip_schedule(course)
        return Response({
            'sections_updated': len(schedule),
            'schedule': UnlockScheduleEntrySerializer(schedule, many=True).data,
        }, status=status.HTTP_200_OK)


class EnrollView(APIView):
    """
    Enroll a learner in a course.

    POST /api/courses/{id}/enroll/
    """

    def post(self, request, pk):
        course = get_object_or_404(Course, pk=pk)
        serializer = EnrollSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        enrollment = services.enroll_learner(course, serializer.validated_data['learner_email'])
        return Response(CourseEnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)


class AvailableSectionsView(APIView):
    """
    Sections a learner can open now.

    GET /api/courses/enrollments/{id}/available-sections/
    """

    def get(self, request, pk):
        enrollment = get_object_or_404(CourseEnrollment.objects.select_related('course'), pk=pk)
        sections = services.get_available_sections(enrollment)
        return Response(CourseSectionSerializer(sections, many=True).data)
